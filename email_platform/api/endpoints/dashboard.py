"""
Dashboard endpoints
"""
import logging
from datetime import timedelta

from fastapi import APIRouter, Depends
from sqlalchemy import DateTime, bindparam, text

from email_platform.api.dependencies import get_current_user, get_database
from email_platform.core.database import Database
from email_platform.core.exceptions import AppException
from email_platform.models import utcnow
from email_platform.schemas import CurrentUser

logger = logging.getLogger(__name__)
router = APIRouter()

RECENT_CAMPAIGNS = 5
STATS_WINDOW = timedelta(days=30)

CONTACT_STATS_SQL = text("""
    SELECT
        COUNT(*) AS total_contacts,
        COALESCE(SUM(CASE WHEN status = 'active' THEN 1 ELSE 0 END), 0) AS active_contacts
    FROM contacts
    WHERE organization_id = :org_id
""")

CAMPAIGN_STATS_SQL = text("""
    SELECT
        COUNT(*) AS total_campaigns,
        COALESCE(SUM(CASE WHEN status = 'sent' THEN 1 ELSE 0 END), 0) AS sent_campaigns,
        COALESCE(SUM(CASE WHEN sent_at >= :since THEN send_count ELSE 0 END), 0) AS emails_sent
    FROM campaigns
    WHERE organization_id = :org_id
""").bindparams(bindparam("since", type_=DateTime()))

RECENT_CAMPAIGNS_SQL = text("""
    SELECT id, name, subject, status, send_count, sent_at, created_at
    FROM campaigns
    WHERE organization_id = :org_id
    ORDER BY created_at DESC, id DESC
    LIMIT :limit
""")


@router.get("/stats")
async def get_dashboard_stats(
    database: Database = Depends(get_database),
    current_user: CurrentUser = Depends(get_current_user),
):
    """
    Headline numbers for the organization's dashboard.
    """
    org_id = current_user.organization_id
    try:
        contacts = (await database.execute(CONTACT_STATS_SQL, {"org_id": org_id}))[0]
        campaigns = (
            await database.execute(
                CAMPAIGN_STATS_SQL,
                {"org_id": org_id, "since": utcnow() - STATS_WINDOW},
            )
        )[0]
        recent = await database.execute(
            RECENT_CAMPAIGNS_SQL,
            {"org_id": org_id, "limit": RECENT_CAMPAIGNS},
        )

        return {
            "total_contacts": contacts["total_contacts"],
            "active_contacts": contacts["active_contacts"],
            "total_campaigns": campaigns["total_campaigns"],
            "sent_campaigns": campaigns["sent_campaigns"],
            "emails_sent_last_30_days": campaigns["emails_sent"],
            "recent_campaigns": recent,
        }

    except Exception as e:
        logger.error(f"Get dashboard stats error: {str(e)}", exc_info=True)
        raise AppException("Failed to fetch dashboard statistics")
