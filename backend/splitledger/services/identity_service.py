"""
Identity enrichment for balance reports.

Attaches email, display name and avatar to computed balances. Lookups are
batched and best effort: a failed lookup only degrades the display data of
the identities it covered, never the numbers.
"""
from concurrent.futures import ThreadPoolExecutor
from typing import Dict, Iterable, List, Optional
import httpx
import logging
from splitledger.core.config import settings
from splitledger.core.errors import StoreAccessError
from splitledger.core.utils import chunked
from splitledger.services import ledger_store
from splitledger.services.balance_service import BalanceReport, LedgerContext
from splitledger.services.participant_resolver import ParticipantRef

logger = logging.getLogger(__name__)

UNKNOWN_USER_LABEL = "Unknown User"


class Identity:
    """Display data for one account."""

    def __init__(self, email: Optional[str] = None, full_name: Optional[str] = None, avatar_url: Optional[str] = None):
        self.email = email
        self.full_name = full_name
        self.avatar_url = avatar_url


def _fetch_admin_email(client: httpx.Client, user_id: str) -> Optional[str]:
    """Fetch one account's email from the auth admin API."""
    try:
        response = client.get(f"/admin/users/{user_id}")
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        logger.warning(f"Auth admin API returned {e.response.status_code} for user {user_id}")
        return None
    except (httpx.HTTPError, ValueError) as e:
        logger.error(f"Error fetching email for user {user_id}: {e}")
        return None
    if not isinstance(data, dict):
        logger.warning(f"Auth admin API returned a non-object body for user {user_id}")
        return None
    user = data.get("user")
    email = (user.get("email") if isinstance(user, dict) else None) or data.get("email")
    return email if isinstance(email, str) and email else None


def _admin_client() -> httpx.Client:
    return httpx.Client(
        base_url=settings.AUTH_ADMIN_URL,
        timeout=settings.IDENTITY_TIMEOUT_SECONDS,
        headers={
            "Authorization": f"Bearer {settings.AUTH_SERVICE_ROLE_KEY}",
            "apikey": settings.AUTH_SERVICE_ROLE_KEY
        }
    )


def _fetch_emails_from_api(client: httpx.Client, user_ids: List[str]) -> Dict[str, str]:
    workers = max(1, min(settings.IDENTITY_MAX_WORKERS, len(user_ids)))
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="identity") as executor:
        results = list(executor.map(lambda uid: (uid, _fetch_admin_email(client, uid)), user_ids))
    return {uid: email for uid, email in results if email}


def _fetch_emails_from_store(context: LedgerContext, user_ids: List[str]) -> Dict[str, str]:
    db = context.session_factory()
    try:
        return ledger_store.fetch_user_emails(db, user_ids)
    finally:
        db.close()


def fetch_emails(
    user_ids: List[str],
    context: LedgerContext,
    client: Optional[httpx.Client] = None
) -> Dict[str, str]:
    """
    Resolve account emails in batches of IDENTITY_BATCH_SIZE.

    Uses the auth admin API when a client is given or AUTH_ADMIN_URL is set,
    otherwise the users table. The viewer's email is taken from the context.
    A failed batch only loses the emails it covered.
    """
    emails: Dict[str, str] = {}
    if context.viewer_email and context.viewer_id in user_ids:
        emails[context.viewer_id] = context.viewer_email
    remaining = [uid for uid in user_ids if uid not in emails]
    if not remaining:
        return emails

    use_api = client is not None or bool(settings.AUTH_ADMIN_URL)
    owns_client = use_api and client is None
    if owns_client:
        client = _admin_client()
    try:
        for batch in chunked(remaining, settings.IDENTITY_BATCH_SIZE):
            try:
                if use_api:
                    emails.update(_fetch_emails_from_api(client, batch))
                else:
                    emails.update(_fetch_emails_from_store(context, batch))
            except StoreAccessError as e:
                logger.warning(f"Email lookup failed for {len(batch)} users: {e}")
            except Exception as e:
                logger.error(f"Unexpected error looking up emails for {len(batch)} users: {e}", exc_info=True)
    finally:
        if owns_client:
            client.close()
    return emails


def fetch_profiles(user_ids: List[str], context: LedgerContext) -> Dict[str, Identity]:
    """Resolve full name and avatar in batches of IDENTITY_BATCH_SIZE."""
    identities: Dict[str, Identity] = {}
    for batch in chunked(user_ids, settings.IDENTITY_BATCH_SIZE):
        db = context.session_factory()
        try:
            for user_id, profile in ledger_store.fetch_profiles(db, batch).items():
                identities[user_id] = Identity(full_name=profile.full_name, avatar_url=profile.avatar_url)
        except StoreAccessError as e:
            logger.warning(f"Profile lookup failed for {len(batch)} users: {e}")
        except Exception as e:
            logger.error(f"Unexpected error looking up profiles for {len(batch)} users: {e}", exc_info=True)
        finally:
            db.close()
    return identities


def fetch_identities(
    user_ids: Iterable[str],
    context: LedgerContext,
    client: Optional[httpx.Client] = None
) -> Dict[str, Identity]:
    """Combine emails and profiles into one Identity per user id."""
    ids = sorted(set(uid for uid in user_ids if uid))
    if not ids:
        return {}
    with ThreadPoolExecutor(max_workers=2, thread_name_prefix="identity-lookup") as executor:
        emails_future = executor.submit(fetch_emails, ids, context, client)
        profiles_future = executor.submit(fetch_profiles, ids, context)
        emails = emails_future.result()
        identities = profiles_future.result()

    for user_id in ids:
        identity = identities.setdefault(user_id, Identity())
        identity.email = emails.get(user_id)
    return identities


def describe(
    user_id: Optional[str],
    participant: Optional[ParticipantRef],
    identities: Dict[str, Identity]
) -> Identity:
    """
    Pick display data for one balance row.
    Account data wins; accountless participants fall back to what was stored
    on the participant; the name falls back to the email, then to a label.
    """
    identity = identities.get(user_id) if user_id else None
    email = (identity.email if identity else None) or (participant.email if participant else None)
    full_name = (
        (identity.full_name if identity else None)
        or (participant.full_name if participant else None)
        or email
        or UNKNOWN_USER_LABEL
    )
    avatar_url = (identity.avatar_url if identity else None) or (participant.avatar_url if participant else None)
    return Identity(email=email, full_name=full_name, avatar_url=avatar_url)


def enrich_report(
    report: BalanceReport,
    context: LedgerContext,
    client: Optional[httpx.Client] = None
) -> BalanceReport:
    """Attach display data to every balance in the report, in place."""
    user_ids = [b.user_id for group in report.group_balances for b in group.balances]
    user_ids += [b.user_id for b in report.overall_balances]
    identities = fetch_identities(user_ids, context, client)

    for group in report.group_balances:
        for balance in group.balances:
            balance.identity = describe(balance.user_id, balance.participant, identities)
    for balance in report.overall_balances:
        balance.identity = describe(balance.user_id, None, identities)
    return report
