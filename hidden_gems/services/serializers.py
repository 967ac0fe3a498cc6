# hidden_gems/services/serializers.py
"""Row -> JSON dict conversion shared by the routers and the realtime hub."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from hidden_gems.models import Gem, GemMedia, Notification, Payment, Rating, User


def iso(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc).isoformat()


def profile_dict(user: User) -> Dict[str, Any]:
    return {
        "id": user.id,
        "email": user.email,
        "full_name": user.full_name,
        "avatar_url": user.avatar_url,
        "role": user.role,
        "country": user.country,
        "created_at": iso(user.created_at),
    }


def public_profile_dict(user: Optional[User]) -> Optional[Dict[str, Any]]:
    if user is None:
        return None
    return {"id": user.id, "full_name": user.full_name, "avatar_url": user.avatar_url}


def media_dict(m: GemMedia) -> Dict[str, Any]:
    return {
        "id": m.id,
        "gem_id": m.gem_id,
        "url": m.url,
        "type": m.type,
        "is_cover": m.is_cover,
        "order": m.order,
        "created_at": iso(m.created_at),
    }


def gem_dict(gem: Gem, media=None) -> Dict[str, Any]:
    data = {
        "id": gem.id,
        "owner_id": gem.owner_id,
        "name": gem.name,
        "slug": gem.slug,
        "description": gem.description,
        "category": gem.category,
        "country": gem.country,
        "city": gem.city,
        "address": gem.address,
        "latitude": gem.latitude,
        "longitude": gem.longitude,
        "phone": gem.phone,
        "email": gem.email,
        "website": gem.website,
        "instagram": gem.instagram,
        "tiktok": gem.tiktok,
        "opening_hours": gem.opening_hours,
        "price_range": gem.price_range,
        "status": gem.status,
        "tier": gem.tier,
        "rejection_reason": gem.rejection_reason,
        "views_count": gem.views_count,
        "average_rating": gem.average_rating,
        "ratings_count": gem.ratings_count,
        "current_term_start": iso(gem.current_term_start),
        "current_term_end": iso(gem.current_term_end),
        "created_at": iso(gem.created_at),
        "updated_at": iso(gem.updated_at),
    }
    if media is not None:
        data["media"] = [media_dict(m) for m in media]
    return data


def rating_dict(rating: Rating, author: Optional[User] = None) -> Dict[str, Any]:
    return {
        "id": rating.id,
        "gem_id": rating.gem_id,
        "user_id": rating.user_id,
        "score": rating.score,
        "comment": rating.comment,
        "created_at": iso(rating.created_at),
        "updated_at": iso(rating.updated_at),
        "user": public_profile_dict(author),
    }


def payment_dict(payment: Payment) -> Dict[str, Any]:
    return {
        "id": payment.id,
        "gem_id": payment.gem_id,
        "user_id": payment.user_id,
        "amount": payment.amount,
        "currency": payment.currency,
        "type": payment.type,
        "tier": payment.tier,
        "status": payment.status,
        "provider": payment.provider,
        "provider_reference": payment.provider_reference,
        "mpesa_receipt_number": payment.mpesa_receipt_number,
        "result_description": payment.result_description,
        "term_start": iso(payment.term_start),
        "term_end": iso(payment.term_end),
        "paid_at": iso(payment.paid_at),
        "created_at": iso(payment.created_at),
        "updated_at": iso(payment.updated_at),
    }


def notification_dict(n: Notification) -> Dict[str, Any]:
    return {
        "id": n.id,
        "user_id": n.user_id,
        "type": n.type,
        "title": n.title,
        "message": n.message,
        "data": n.data or {},
        "read": bool(n.read),
        "created_at": iso(n.created_at),
    }
