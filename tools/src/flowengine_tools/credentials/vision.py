"""
OCR credentials.

Contains credentials for Google Cloud Vision, used by OCR nodes.
"""

from .base import CredentialSpec

VISION_CREDENTIALS = {
    "google_vision": CredentialSpec(
        env_var="GOOGLE_CLOUD_VISION_API_KEY",
        node_types=["ocr"],
        required=True,
        help_url="https://console.cloud.google.com/apis/credentials",
        description="Google Cloud Vision API key for text recognition",
        api_key_instructions="""To get a Google Cloud Vision API key:
1. Go to Google Cloud Console (console.cloud.google.com)
2. Create a new project or select existing
3. Go to APIs & Services > Library
4. Search for "Cloud Vision API" and enable it
5. Go to APIs & Services > Credentials
6. Click "Create Credentials" > "API Key"
7. Copy the API key""",
    ),
}
