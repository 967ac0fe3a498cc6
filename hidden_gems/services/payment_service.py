# FILE: hidden_gems/services/payment_service.py
"""
Listing payments over M-Pesa: initiate an STK push, settle it from the
gateway callback or from client polling, and apply the paid term to the gem.

Settlement is a conditional ``UPDATE ... WHERE status = 'pending'`` so the
callback and a poll racing on the same payment settle it exactly once; only
the winner runs the downstream effects.
"""
import calendar
import json
import logging
import time
import uuid
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from hidden_gems.core import config
from hidden_gems.core.errors import Forbidden, NotFound, UpstreamError, ValidationError
from hidden_gems.models import Gem, Payment, User
from hidden_gems.models.payment import PAYMENT_TYPES
from hidden_gems.services import mpesa_service, notification_service
from hidden_gems.services.mpesa_service import mpesa_logger
from hidden_gems.services.serializers import iso

logger = logging.getLogger("hidden-gems.payments")

ACCEPTED = {"ResultCode": 0, "ResultDesc": "Accepted"}
INVALID_CALLBACK = {"ResultCode": 1, "ResultDesc": "Invalid callback structure"}


def add_months(start: datetime, months: int) -> datetime:
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return start.replace(year=year, month=month, day=day)


def price_for(tier: str) -> int:
    return config.PRICING[tier]["per_term"]


def account_reference(gem_id: str) -> str:
    return "GEM" + gem_id.replace("-", "")[:8].upper()


# ─────────────────────────────────────────────
# INITIATE
# ─────────────────────────────────────────────

async def initiate(
    db: AsyncSession,
    caller: User,
    gem_id: Optional[str],
    tier: Optional[str],
    purpose: Optional[str],
    phone_number: Optional[str],
) -> Dict[str, Any]:
    if not gem_id or not tier or not purpose:
        raise ValidationError("Missing required fields: gemId, tier, type")
    if not phone_number:
        raise ValidationError("Phone number is required for M-Pesa payments")
    if tier not in ("standard", "featured"):
        raise ValidationError("Invalid tier")
    if purpose not in PAYMENT_TYPES:
        raise ValidationError("Invalid payment type")

    gem = (await db.execute(select(Gem).where(Gem.id == gem_id))).scalar_one_or_none()
    if not gem:
        raise NotFound("Gem not found")
    if gem.owner_id != caller.id:
        raise Forbidden("You do not own this gem")

    now = datetime.utcnow()
    payment = Payment(
        id=str(uuid.uuid4()),
        gem_id=gem.id,
        user_id=caller.id,
        amount=price_for(tier),
        currency=config.CURRENCY,
        type=purpose,
        tier=tier,
        status="pending",
        provider="mpesa",
        phone_number=phone_number,
        term_start=now,
        term_end=add_months(now, config.PRICING["term_months"]),
        created_at=now,
        updated_at=now,
    )
    db.add(payment)
    await db.commit()
    logger.info(f"Payment {payment.id} created: gem={gem.id} tier={tier} type={purpose} amount={payment.amount}")

    try:
        push = await mpesa_service.initiate_stk_push(
            phone_number,
            payment.amount,
            account_reference(gem.id),
            f"{tier.capitalize()} listing",
        )
    except Exception as e:
        logger.error(f"STK push failed for payment {payment.id}: {e}")
        payment.status = "failed"
        payment.result_description = str(e)[:300]
        payment.updated_at = datetime.utcnow()
        await db.commit()
        raise UpstreamError("Payment initiation failed")

    payment.checkout_request_id = push.get("checkout_request_id")
    payment.merchant_request_id = push.get("merchant_request_id")
    payment.updated_at = datetime.utcnow()
    await db.commit()

    return {
        "success": True,
        "paymentId": payment.id,
        "checkoutRequestId": payment.checkout_request_id,
        "message": push.get("customer_message") or "Check your phone to complete the payment",
    }


# ─────────────────────────────────────────────
# SETTLEMENT
# ─────────────────────────────────────────────

async def _finalize(db: AsyncSession, payment_id: str, values: Dict[str, Any]) -> bool:
    """Move a pending payment to a terminal state. False if someone else already did."""
    values = dict(values, updated_at=datetime.utcnow())
    result = await db.execute(
        update(Payment)
        .where(Payment.id == payment_id, Payment.status == "pending")
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await db.commit()
    return result.rowcount == 1


async def _load(db: AsyncSession, payment_id: str) -> Payment:
    payment = (
        await db.execute(
            select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        )
    ).scalar_one()
    return payment


async def complete_payment(db: AsyncSession, payment: Payment, receipt: str, extra: Optional[Dict[str, Any]] = None) -> bool:
    now = datetime.utcnow()
    values = {
        "status": "completed",
        "provider_reference": receipt,
        "mpesa_receipt_number": receipt,
        "paid_at": now,
    }
    values.update(extra or {})
    if not await _finalize(db, payment.id, values):
        logger.info(f"Payment {payment.id} already settled, ignoring completion")
        return False

    payment = await _load(db, payment.id)
    await _apply_term(db, payment)
    logger.info(f"Payment {payment.id} completed, receipt {receipt}")
    return True


async def fail_payment(db: AsyncSession, payment: Payment, description: str, extra: Optional[Dict[str, Any]] = None) -> bool:
    values = {"status": "failed", "result_description": (description or "")[:300]}
    values.update(extra or {})
    if not await _finalize(db, payment.id, values):
        logger.info(f"Payment {payment.id} already settled, ignoring failure")
        return False

    gem = await _payment_gem(db, payment)
    data = {"payment_id": payment.id, "gem_id": payment.gem_id, "gem_name": gem.name if gem else None}
    if payment.gem_id:
        data["action_url"] = f"/gems/{payment.gem_id}/pay"
    await notification_service.notify(
        db,
        payment.user_id,
        "payment_failed",
        "Payment Failed",
        f'Your payment for "{gem.name if gem else "your listing"}" did not go through. {description}'.strip(),
        data,
    )
    logger.info(f"Payment {payment.id} failed: {description}")
    return True


async def _payment_gem(db: AsyncSession, payment: Payment) -> Optional[Gem]:
    if not payment.gem_id:
        return None
    return (await db.execute(select(Gem).where(Gem.id == payment.gem_id))).scalar_one_or_none()


async def _apply_term(db: AsyncSession, payment: Payment) -> None:
    gem = await _payment_gem(db, payment)
    if gem is None:
        logger.warning(f"Payment {payment.id} completed for a deleted gem")
        return

    gem.current_term_start = payment.term_start
    gem.current_term_end = payment.term_end
    gem.tier = "featured" if payment.type == "upgrade" else payment.tier
    if gem.status == "expired":
        gem.status = "approved"
    gem.updated_at = datetime.utcnow()
    await db.commit()

    data = {
        "payment_id": payment.id,
        "gem_id": gem.id,
        "gem_name": gem.name,
        "action_url": f"/gems/{gem.slug}",
    }
    await notification_service.notify(
        db,
        payment.user_id,
        "payment_success",
        "Payment Successful",
        f'Your payment of {payment.currency} {payment.amount} for "{gem.name}" was received.',
        data,
    )
    await notification_service.notify_admins(
        db,
        "new_payment",
        "New Payment Received",
        f'{payment.currency} {payment.amount} received for "{gem.name}" ({payment.tier}).',
        dict(data, action_url="/admin/payments"),
    )


# ─────────────────────────────────────────────
# CALLBACK
# ─────────────────────────────────────────────

async def handle_callback(db: AsyncSession, raw_body: bytes) -> Tuple[int, Dict[str, Any]]:
    """Process the gateway callback. Returns ``(status_code, body)``."""
    try:
        body = json.loads(raw_body or b"")
    except ValueError:
        mpesa_logger.warning("Callback body is not JSON")
        return 400, INVALID_CALLBACK

    if not mpesa_service.validate_callback(body):
        mpesa_logger.warning(f"Invalid callback structure: {body}")
        return 400, INVALID_CALLBACK

    mpesa_logger.info(f"Callback: {body}")

    # The gateway only needs an acknowledgement; local failures are logged
    try:
        result = mpesa_service.parse_callback(body)
        payment = (
            await db.execute(
                select(Payment).where(Payment.checkout_request_id == result["checkout_request_id"])
            )
        ).scalar_one_or_none()
        if payment is None:
            logger.warning(f"Callback for unknown checkout {result['checkout_request_id']}")
            return 200, ACCEPTED

        extra = {"result_code": result["result_code"]}
        if result["success"]:
            extra["raw"] = {
                "amount": result["amount"],
                "transaction_date": result["transaction_date"],
                "phone_number": result["phone_number"],
            }
            extra["result_description"] = result["result_description"]
            await complete_payment(db, payment, result["mpesa_receipt_number"], extra)
        else:
            await fail_payment(db, payment, result["result_description"], extra)
    except Exception:
        logger.exception("Error processing M-Pesa callback")
        await db.rollback()

    return 200, ACCEPTED


# ─────────────────────────────────────────────
# STATUS
# ─────────────────────────────────────────────

async def _get_visible_payment(db: AsyncSession, payment_id: str, caller: User) -> Payment:
    payment = (await db.execute(select(Payment).where(Payment.id == payment_id))).scalar_one_or_none()
    if payment is None or (payment.user_id != caller.id and caller.role != "admin"):
        raise NotFound("Payment not found")
    return payment


async def poll_status(db: AsyncSession, payment_id: str, caller: User) -> Dict[str, Any]:
    payment = await _get_visible_payment(db, payment_id, caller)
    payment_id = payment.id

    if payment.status == "pending" and payment.checkout_request_id:
        try:
            query = await mpesa_service.query_stk_status(payment.checkout_request_id)
            code = query["result_code"]
            if code == mpesa_service.RESULT_SUCCESS:
                await complete_payment(db, payment, f"QUERY_{int(time.time() * 1000)}", {"result_code": code})
            elif code == mpesa_service.RESULT_CANCELLED_BY_USER:
                await fail_payment(db, payment, "Payment cancelled by user", {"result_code": code})
            elif code != mpesa_service.RESULT_STILL_PROCESSING:
                await fail_payment(db, payment, query["result_description"], {"result_code": code})
        except Exception as e:
            # Gateway hiccups leave the payment pending for the next poll
            logger.warning(f"Status query failed for payment {payment_id}: {e}")
            await db.rollback()

        payment = await _load(db, payment_id)

    response: Dict[str, Any] = {"status": payment.status}
    if payment.status == "completed":
        response["receipt"] = payment.mpesa_receipt_number
    elif payment.status == "failed":
        response["error"] = payment.result_description
    return response


async def get_payment(db: AsyncSession, payment_id: str, caller: User) -> Dict[str, Any]:
    payment = await _get_visible_payment(db, payment_id, caller)
    messages = {
        "pending": "Waiting for payment confirmation",
        "completed": "Payment completed",
        "refunded": "Payment refunded",
    }
    return {
        "id": payment.id,
        "status": payment.status,
        "provider": payment.provider,
        "receiptNumber": payment.mpesa_receipt_number,
        "message": payment.result_description if payment.status == "failed" else messages.get(payment.status),
        "createdAt": iso(payment.created_at),
    }
