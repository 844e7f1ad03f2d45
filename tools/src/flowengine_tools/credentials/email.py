"""
Email credentials.

Contains credentials for the Unipile email API used by sendMail and
emailAttachment nodes.
"""

from .base import CredentialSpec

EMAIL_CREDENTIALS = {
    "unipile": CredentialSpec(
        env_var="UNIPILE_EMAIL_API_KEY",
        node_types=["sendMail", "emailAttachment"],
        required=True,
        help_url="https://dashboard.unipile.com",
        description="API key for the Unipile email API",
        api_key_instructions="""To get a Unipile API key:
1. Sign in to the Unipile dashboard
2. Open the Access Tokens page
3. Generate a token with email permissions
4. Copy the token and your DSN (the API base URL)""",
        credential_group="unipile",
    ),
    "unipile_base_url": CredentialSpec(
        env_var="UNIPILE_BASE_URL",
        node_types=["sendMail", "emailAttachment"],
        required=True,
        help_url="https://dashboard.unipile.com",
        description="Unipile API base URL, e.g. https://api1.unipile.com:13111/api/v1",
        credential_group="unipile",
    ),
    "unipile_account_id": CredentialSpec(
        env_var="UNIPILE_EMAIL_ACCOUNT_ID",
        node_types=["sendMail", "emailAttachment"],
        required=False,
        description="Default Unipile account used when a node does not name one",
        credential_group="unipile",
    ),
}
