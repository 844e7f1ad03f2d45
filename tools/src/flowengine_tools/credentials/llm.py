"""
LLM provider credentials.

Contains credentials for language model providers used by AI nodes.
"""

from .base import CredentialSpec

LLM_CREDENTIALS = {
    "anthropic": CredentialSpec(
        env_var="ANTHROPIC_API_KEY",
        node_types=["ai"],
        required=False,  # Not required - AI nodes can use other providers via LiteLLM
        help_url="https://console.anthropic.com/settings/keys",
        description="API key for Anthropic Claude models",
        api_key_instructions="""To get an Anthropic API key:
1. Go to https://console.anthropic.com/settings/keys
2. Sign in or create an Anthropic account
3. Click "Create Key"
4. Copy the API key (starts with sk-ant-)""",
    ),
}
