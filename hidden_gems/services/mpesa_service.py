# FILE: hidden_gems/services/mpesa_service.py
"""
M-Pesa Daraja client: OAuth token, STK push, STK status query and callback
parsing. Gateway traffic is mirrored to ``LOG_DIR/mpesa.log``.
"""
import base64
import logging
import os
import re
import time
from datetime import datetime
from typing import Any, Dict, Optional

import httpx

from hidden_gems.core import config

logger = logging.getLogger("hidden-gems.mpesa")

os.makedirs(config.LOG_DIR, exist_ok=True)
mpesa_logger = logging.getLogger("mpesa_hidden_gems")
if not mpesa_logger.handlers:
    handler = logging.FileHandler(os.path.join(config.LOG_DIR, "mpesa.log"))
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(message)s")
    handler.setFormatter(formatter)
    mpesa_logger.setLevel(logging.INFO)
    mpesa_logger.addHandler(handler)

# Refresh the OAuth token this many seconds before it expires
TOKEN_REFRESH_MARGIN = 60

# Result codes the status query can return
RESULT_SUCCESS = 0
RESULT_STILL_PROCESSING = 1
RESULT_CANCELLED_BY_USER = 1032


class MpesaError(Exception):
    pass


_token_cache: Dict[str, Any] = {"token": None, "expires_at": 0.0}


def reset_token_cache() -> None:
    _token_cache["token"] = None
    _token_cache["expires_at"] = 0.0


def _client() -> httpx.AsyncClient:
    return httpx.AsyncClient(base_url=config.mpesa_base_url(), timeout=30)


# ─────────────────────────────────────────────
# HELPERS
# ─────────────────────────────────────────────

def timestamp(now: Optional[datetime] = None) -> str:
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def generate_password(ts: str) -> str:
    raw = f"{config.MPESA_SHORTCODE}{config.MPESA_PASSKEY}{ts}"
    return base64.b64encode(raw.encode("utf-8")).decode("utf-8")


def format_phone_number(phone: str) -> str:
    """Normalise Kenyan numbers to 254XXXXXXXXX."""
    cleaned = re.sub(r"[\s\-()]", "", phone or "")
    if cleaned.startswith("+"):
        cleaned = cleaned[1:]
    if cleaned.startswith("0"):
        cleaned = "254" + cleaned[1:]
    elif cleaned.startswith("7") or cleaned.startswith("1"):
        cleaned = "254" + cleaned
    return cleaned


async def get_access_token() -> str:
    now = time.time()
    if _token_cache["token"] and now < _token_cache["expires_at"]:
        return _token_cache["token"]

    if not config.MPESA_CONSUMER_KEY or not config.MPESA_CONSUMER_SECRET:
        raise MpesaError("M-Pesa credentials are not configured")

    async with _client() as client:
        resp = await client.get(
            "/oauth/v1/generate",
            params={"grant_type": "client_credentials"},
            auth=(config.MPESA_CONSUMER_KEY, config.MPESA_CONSUMER_SECRET),
        )
    if resp.status_code >= 400:
        mpesa_logger.error(f"OAuth failed: {resp.status_code} {resp.text}")
        raise MpesaError(f"Failed to get M-Pesa access token: {resp.status_code}")

    data = resp.json()
    token = data.get("access_token")
    if not token:
        raise MpesaError("M-Pesa OAuth response had no access_token")

    expires_in = int(data.get("expires_in", 3599))
    _token_cache["token"] = token
    _token_cache["expires_at"] = now + expires_in - TOKEN_REFRESH_MARGIN
    return token


# ─────────────────────────────────────────────
# STK PUSH
# ─────────────────────────────────────────────

async def initiate_stk_push(phone_number: str, amount: int, account_reference: str, description: str) -> Dict[str, str]:
    """Start a Lipa na M-Pesa prompt on the customer's phone."""
    token = await get_access_token()
    ts = timestamp()
    phone = format_phone_number(phone_number)

    payload = {
        "BusinessShortCode": config.MPESA_SHORTCODE,
        "Password": generate_password(ts),
        "Timestamp": ts,
        "TransactionType": "CustomerPayBillOnline",
        "Amount": int(round(amount)),
        "PartyA": phone,
        "PartyB": config.MPESA_SHORTCODE,
        "PhoneNumber": phone,
        "CallBackURL": config.MPESA_CALLBACK_URL,
        "AccountReference": account_reference[:12],
        "TransactionDesc": description[:13],
    }
    mpesa_logger.info(f"STK push -> {phone} amount={payload['Amount']} ref={payload['AccountReference']}")

    async with _client() as client:
        resp = await client.post(
            "/mpesa/stkpush/v1/processrequest",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )

    data = _json_or_empty(resp)
    mpesa_logger.info(f"STK push <- {resp.status_code} {data}")

    if resp.status_code >= 400 or str(data.get("ResponseCode")) != "0":
        message = data.get("errorMessage") or data.get("ResponseDescription") or f"HTTP {resp.status_code}"
        raise MpesaError(f"STK push failed: {message}")

    return {
        "merchant_request_id": data.get("MerchantRequestID"),
        "checkout_request_id": data.get("CheckoutRequestID"),
        "response_description": data.get("ResponseDescription"),
        "customer_message": data.get("CustomerMessage"),
    }


async def query_stk_status(checkout_request_id: str) -> Dict[str, Any]:
    token = await get_access_token()
    ts = timestamp()
    payload = {
        "BusinessShortCode": config.MPESA_SHORTCODE,
        "Password": generate_password(ts),
        "Timestamp": ts,
        "CheckoutRequestID": checkout_request_id,
    }

    async with _client() as client:
        resp = await client.post(
            "/mpesa/stkpushquery/v1/query",
            json=payload,
            headers={"Authorization": f"Bearer {token}"},
        )

    data = _json_or_empty(resp)
    mpesa_logger.info(f"STK query {checkout_request_id} <- {resp.status_code} {data}")

    if resp.status_code >= 400:
        message = data.get("errorMessage") or f"HTTP {resp.status_code}"
        raise MpesaError(f"STK query failed: {message}")

    return {
        "result_code": int(data.get("ResultCode", RESULT_STILL_PROCESSING)),
        "result_description": data.get("ResultDesc", ""),
        "checkout_request_id": data.get("CheckoutRequestID", checkout_request_id),
    }


def _json_or_empty(resp: httpx.Response) -> Dict[str, Any]:
    try:
        data = resp.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


# ─────────────────────────────────────────────
# CALLBACK
# ─────────────────────────────────────────────

def validate_callback(body: Any) -> bool:
    """Structural check of ``Body.stkCallback``."""
    if not isinstance(body, dict):
        return False
    inner = body.get("Body")
    if not isinstance(inner, dict):
        return False
    cb = inner.get("stkCallback")
    if not isinstance(cb, dict):
        return False
    code = cb.get("ResultCode")
    return (
        isinstance(cb.get("MerchantRequestID"), str)
        and isinstance(cb.get("CheckoutRequestID"), str)
        and isinstance(code, int)
        and not isinstance(code, bool)
    )


def parse_callback(body: Dict[str, Any]) -> Dict[str, Any]:
    cb = body["Body"]["stkCallback"]
    result = {
        "merchant_request_id": cb["MerchantRequestID"],
        "checkout_request_id": cb["CheckoutRequestID"],
        "result_code": cb["ResultCode"],
        "result_description": cb.get("ResultDesc", ""),
        "success": cb["ResultCode"] == RESULT_SUCCESS,
        "amount": None,
        "mpesa_receipt_number": None,
        "transaction_date": None,
        "phone_number": None,
    }
    if not result["success"]:
        return result

    items = (cb.get("CallbackMetadata") or {}).get("Item") or []
    values = {item.get("Name"): item.get("Value") for item in items if isinstance(item, dict)}
    result["amount"] = values.get("Amount")
    result["mpesa_receipt_number"] = values.get("MpesaReceiptNumber")
    result["transaction_date"] = values.get("TransactionDate")
    phone = values.get("PhoneNumber")
    result["phone_number"] = str(phone) if phone is not None else None
    return result
