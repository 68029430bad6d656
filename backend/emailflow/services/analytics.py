"""Delivery analytics - counts and formatted rates per email, experiment, type and system."""
from collections import Counter
from typing import Any, Dict, Iterable, List, Mapping, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from emailflow.db.models.contact import Contact
from emailflow.db.models.delivery import (
    DELIVERED_STATUSES,
    OPENED_STATUSES,
    DeliveryStatus,
    EmailDelivery,
)
from emailflow.db.models.email import Email, EmailType, ExperimentVariant

RECENT_ACTIVITY_LIMIT = 5


def _ratio(numerator: int, denominator: int) -> float:
    return numerator / denominator * 100 if denominator else 0.0


def format_rate(numerator: int, denominator: int) -> str:
    """Percentage with two decimals; "0.00" for a zero denominator."""
    return f"{_ratio(numerator, denominator):.2f}"


def stats_from_status_counts(counts: Mapping[DeliveryStatus, int]) -> Dict[str, Any]:
    """Build the stats block from per-status delivery counts."""
    total = sum(counts.values())
    delivered = sum(counts.get(s, 0) for s in DELIVERED_STATUSES)
    opened = sum(counts.get(s, 0) for s in OPENED_STATUSES)
    clicked = counts.get(DeliveryStatus.CLICKED, 0)
    bounced = counts.get(DeliveryStatus.BOUNCED, 0)
    complained = counts.get(DeliveryStatus.COMPLAINED, 0)

    return {
        "total": total,
        "delivered": delivered,
        "opened": opened,
        "clicked": clicked,
        "bounced": bounced,
        "complained": complained,
        "failed": counts.get(DeliveryStatus.FAILED, 0),
        "deliveryRate": format_rate(delivered, total),
        "openRate": format_rate(opened, delivered),
        "clickRate": format_rate(clicked, opened),
        "clickThroughRate": format_rate(clicked, delivered),
        "bounceRate": format_rate(bounced, total),
        "complaintRate": format_rate(complained, delivered),
    }


def compute_delivery_stats(deliveries: Iterable[Any]) -> Dict[str, Any]:
    """Stats for a collection of deliveries (anything with a `status`)."""
    return stats_from_status_counts(Counter(DeliveryStatus(d.status) for d in deliveries))


def _status_counts(db: Session, *criteria) -> Counter:
    rows = db.query(EmailDelivery.status, func.count(EmailDelivery.delivery_id)).filter(
        *criteria
    ).group_by(EmailDelivery.status).all()
    return Counter({DeliveryStatus(status): count for status, count in rows})


def email_analytics(db: Session, email: Email) -> Dict[str, Any]:
    """Stats for one email across all of its deliveries."""
    stats = stats_from_status_counts(_status_counts(db, EmailDelivery.email_id == email.email_id))
    return {
        "email_id": email.email_id,
        "name": email.name,
        "type": email.type.value,
        "stats": stats,
    }


def select_winner(variant_stats: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Variant with the strictly highest open rate among those with deliveries.

    Rates are compared as reported (two decimals); ties keep the earlier variant.
    """
    winner = None
    best = None
    for entry in variant_stats:
        stats = entry["stats"]
        if stats["total"] == 0:
            continue
        rate = float(stats["openRate"])
        if best is None or rate > best:
            winner, best = entry, rate
    return winner


def _improvement(winner: Optional[Dict[str, Any]], variant_stats: List[Dict[str, Any]]) -> str:
    others = [v for v in variant_stats if winner is not None and v is not winner]
    if winner is None or not others:
        return "N/A"
    winner_rate = float(winner["stats"]["openRate"])
    mean_other = sum(float(v["stats"]["openRate"]) for v in others) / len(others)
    return f"{winner_rate - mean_other:.2f}%"


def experiment_analytics(db: Session, email: Email) -> Optional[Dict[str, Any]]:
    """Per-variant stats, winner and improvement; None when there are no variants."""
    variants = db.query(ExperimentVariant).filter(
        ExperimentVariant.email_id == email.email_id
    ).order_by(ExperimentVariant.variant_letter).all()
    if not variants:
        return None

    rows = db.query(
        EmailDelivery.variant_id, EmailDelivery.status, func.count(EmailDelivery.delivery_id)
    ).filter(
        EmailDelivery.email_id == email.email_id,
        EmailDelivery.variant_id.isnot(None)
    ).group_by(EmailDelivery.variant_id, EmailDelivery.status).all()

    per_variant: Dict[int, Counter] = {}
    for variant_id, status, count in rows:
        per_variant.setdefault(variant_id, Counter())[DeliveryStatus(status)] = count

    variant_stats = [
        {
            "variant_id": v.variant_id,
            "variant_letter": v.variant_letter,
            "subject": v.subject,
            "key_angle": v.key_angle,
            "stats": stats_from_status_counts(per_variant.get(v.variant_id, Counter())),
        }
        for v in variants
    ]

    winner = select_winner(variant_stats)
    return {
        "email_id": email.email_id,
        "name": email.name,
        "variants": variant_stats,
        "winner": {
            "variant_id": winner["variant_id"],
            "variant_letter": winner["variant_letter"],
            "openRate": winner["stats"]["openRate"],
            "improvement": _improvement(winner, variant_stats),
        } if winner else None,
    }


def type_statistics(db: Session) -> Dict[str, Any]:
    """Email count and delivery stats for each email type."""
    email_counts = dict(
        db.query(Email.type, func.count(Email.email_id)).group_by(Email.type).all()
    )
    rows = db.query(
        Email.type, EmailDelivery.status, func.count(EmailDelivery.delivery_id)
    ).join(Email, Email.email_id == EmailDelivery.email_id).group_by(Email.type, EmailDelivery.status).all()

    per_type: Dict[EmailType, Counter] = {}
    for email_type, status, count in rows:
        per_type.setdefault(EmailType(email_type), Counter())[DeliveryStatus(status)] = count

    return {
        email_type.value: {
            "emails": email_counts.get(email_type, 0),
            "stats": stats_from_status_counts(per_type.get(email_type, Counter())),
        }
        for email_type in EmailType
    }


def summary(db: Session) -> Dict[str, Any]:
    """System-wide dashboard summary."""
    email_counts = {t.value: 0 for t in EmailType}
    for email_type, count in db.query(Email.type, func.count(Email.email_id)).group_by(Email.type).all():
        email_counts[EmailType(email_type).value] = count

    counts = _status_counts(db)
    recent = db.query(EmailDelivery).order_by(
        EmailDelivery.updated_at.desc(), EmailDelivery.delivery_id.desc()
    ).limit(RECENT_ACTIVITY_LIMIT).all()

    return {
        "emailCounts": {**email_counts, "total": sum(email_counts.values())},
        "deliveryCounts": {s.value: counts.get(s, 0) for s in DeliveryStatus},
        "stats": stats_from_status_counts(counts),
        "contacts": {"total": db.query(func.count(Contact.contact_id)).scalar() or 0},
        "recentActivity": [
            {
                "delivery_id": d.delivery_id,
                "email_id": d.email_id,
                "contact_id": d.contact_id,
                "variant_id": d.variant_id,
                "status": d.status.value,
                "updated_at": d.updated_at.isoformat() if d.updated_at else None,
            }
            for d in recent
        ],
    }
