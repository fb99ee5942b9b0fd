import base64
import binascii
import hmac
import json
import logging
from typing import Dict, Optional, Any

from newport.core.config import settings

logger = logging.getLogger(__name__)


class PaymeError(Exception):
    pass


class PaymeConfigurationError(PaymeError):
    pass


class PaymeService:
    """Merchant side of the Payme checkout integration.

    Builds the hosted checkout URL handed to residents and authenticates the
    callbacks Payme makes to the merchant webhook.
    """

    def __init__(
        self,
        merchant_id: Optional[str] = None,
        key: Optional[str] = None,
        login: Optional[str] = None,
        test_mode: Optional[bool] = None,
    ):
        self.merchant_id = merchant_id if merchant_id is not None else settings.PAYME_MERCHANT_ID
        self.key = key if key is not None else settings.PAYME_KEY
        self.login = login if login is not None else settings.PAYME_LOGIN
        self.test_mode = settings.PAYME_TEST_MODE if test_mode is None else test_mode
        self.callback_url = settings.PAYME_CALLBACK_URL
        self.locale = settings.PAYME_LOCALE

        if not self.merchant_id or not self.key:
            raise PaymeConfigurationError("Payme merchant ID and key are required")

        self.checkout_url = (
            settings.PAYME_TEST_CHECKOUT_URL if self.test_mode else settings.PAYME_CHECKOUT_URL
        )
        logger.info("Payme service initialized in %s mode", "TEST" if self.test_mode else "PRODUCTION")

    def build_checkout_params(self, payment_id: str, apartment_id: str, amount: int) -> Dict[str, Any]:
        """Checkout parameters; ``amount`` is in sum and sent to Payme in tiyin."""
        return {
            "m": self.merchant_id,
            "ac": {
                "payment_id": payment_id,
                "apartment_id": apartment_id,
            },
            "a": amount * 100,
            "l": self.locale,
            "c": self.callback_url,
        }

    def build_checkout_url(self, payment_id: str, apartment_id: str, amount: int) -> str:
        params = self.build_checkout_params(payment_id, apartment_id, amount)
        json_data = json.dumps(params, separators=(',', ':'))
        encoded = base64.b64encode(json_data.encode('utf-8')).decode('ascii')
        return f"{self.checkout_url}/{encoded}"

    def verify_authorization(self, authorization: Optional[str]) -> bool:
        """Check the ``Authorization: Basic`` header sent with every Payme callback."""
        if not authorization or not authorization.startswith("Basic "):
            return False

        try:
            credentials = base64.b64decode(authorization[len("Basic "):].strip(), validate=True).decode('utf-8')
        except (binascii.Error, UnicodeDecodeError):
            return False

        login, separator, password = credentials.partition(':')
        if not separator:
            return False

        login_ok = hmac.compare_digest(login.encode('utf-8'), self.login.encode('utf-8'))
        password_ok = hmac.compare_digest(password.encode('utf-8'), self.key.encode('utf-8'))
        return login_ok and password_ok
