"""
HTTP Routes

Thin handlers: parse the request, call one flow, shape the JSON.
Error bodies are always {"error": "<message>"}.
"""

from typing import Any, Optional

import structlog
from fastapi import APIRouter, Depends, Header, Query, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from piggybank.audit import create_correlation_id
from piggybank.config import validate_all_settings
from piggybank.models.finance import RecurringTransaction, SavingsReport
from piggybank.orchestrator import AppComponents
from piggybank.services.identity import IdentityServiceError, UnknownUserError
from piggybank.services.push import is_ios_safari_request
from piggybank.validation import IngestValidationError, SubscriptionValidationError


logger = structlog.get_logger(__name__)

router = APIRouter()

INTERNAL_ERROR = "Internal server error"


def get_components(request: Request) -> AppComponents:
    return request.app.state.components


def error_response(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


async def read_json_body(request: Request) -> Any:
    """Parsed JSON body, or None when the body is missing or not JSON."""
    try:
        return await request.json()
    except ValueError:
        return None


def serialize_report(report: SavingsReport) -> dict[str, Any]:
    """Camel-cased savings summary; money as floats for JSON clients."""
    savings = report.savings
    return {
        "range": report.date_range.value,
        "totalSavings": float(savings.total_savings),
        "averageDailySavings": float(savings.average_daily_savings),
        "daysTracked": savings.days_tracked,
        "today": {
            "date": report.today.date.isoformat(),
            "budgetPerDay": float(report.today.budget_per_day),
            "actualExpenses": float(report.today.actual_expenses),
            "actualIncome": float(report.today.actual_income),
            "dailySavings": float(report.today.daily_savings),
        },
        "rangeBudget": float(report.range_budget),
        "rangeSpent": float(report.range_spent),
        "progress": {
            "percentage": float(report.progress.percentage),
            "displayPercentage": float(report.progress.display_percentage),
            "isOverBudget": report.progress.is_over_budget,
            "remaining": float(report.progress.remaining),
        },
        "expenseTotals": [
            {"category": total.category, "amount": float(total.amount)}
            for total in report.expense_totals
        ],
        "dailyBreakdown": [
            {
                "date": day.date.isoformat(),
                "budgetPerDay": float(day.budget_per_day),
                "actualExpenses": float(day.actual_expenses),
                "actualIncome": float(day.actual_income),
                "dailySavings": float(day.daily_savings),
                "cumulativeSavings": float(day.cumulative_savings),
            }
            for day in savings.daily_breakdown
        ],
    }


# =============================================================================
# TRANSACTIONS
# =============================================================================

@router.post("/transactions")
async def create_transaction(
    request: Request,
    user_agent: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
):
    """Ingest one transaction, e.g. from an Apple Shortcut."""
    body = await read_json_body(request)
    correlation_id = create_correlation_id()

    try:
        transaction_id = await components.ingest_flow.ingest(
            body,
            user_agent=user_agent,
            correlation_id=correlation_id,
        )
    except IngestValidationError as e:
        return error_response(e.message, 400)
    except UnknownUserError:
        return error_response("Invalid UserID", 401)
    except IdentityServiceError as e:
        logger.error("identity_unavailable", correlation_id=str(correlation_id), error=str(e))
        await components.audit_logger.log_external_service_error(
            service="identity",
            error_message=str(e),
            correlation_id=correlation_id,
        )
        return error_response(INTERNAL_ERROR, 500)
    except Exception as e:
        logger.exception("transaction_ingest_failed", correlation_id=str(correlation_id))
        await components.audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
            correlation_id=correlation_id,
        )
        return error_response(INTERNAL_ERROR, 500)

    return JSONResponse(
        status_code=201,
        content={
            "success": True,
            "transactionId": transaction_id,
            "message": "Transaction created successfully",
        },
    )


@router.get("/transactions")
async def list_transactions(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    limit: int = Query(default=20, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    components: AppComponents = Depends(get_components),
):
    if not user_id:
        return error_response("User ID is required", 400)

    try:
        transactions = await components.transactions.list_transactions(
            user_id, limit=limit, offset=offset
        )
    except Exception:
        logger.exception("transactions_list_failed", user_id=user_id)
        return error_response("Failed to retrieve transactions.", 500)

    return {
        "transactions": [t.to_public_dict() for t in transactions],
        "count": len(transactions),
        "hasMore": len(transactions) == limit,
    }


# =============================================================================
# PUSH SUBSCRIPTIONS
# =============================================================================

@router.post("/push-subscriptions")
async def register_push_subscription(
    request: Request,
    user_agent: Optional[str] = Header(default=None),
    x_ios_safari: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
):
    body = await read_json_body(request)
    if not isinstance(body, dict):
        body = {}

    is_ios_safari = is_ios_safari_request(user_agent, x_ios_safari) or bool(body.get("isIOSSafari"))
    client_user_agent = body.get("userAgent") or user_agent

    try:
        subscription_id = await components.subscription_flow.register(
            user_id=body.get("userId"),
            subscription=body.get("subscription"),
            old_endpoint=body.get("oldEndpoint"),
            is_ios_safari=is_ios_safari,
            user_agent=client_user_agent,
        )
    except SubscriptionValidationError as e:
        logger.warning("push_subscription_rejected", error=e.message)
        return error_response(e.message, 400)
    except Exception:
        logger.exception("push_subscription_failed")
        return error_response("Failed to register push subscription.", 500)

    return {
        "success": True,
        "subscriptionId": subscription_id,
        "isIOSSafari": is_ios_safari,
        "message": (
            "iOS push subscription registered successfully"
            if is_ios_safari
            else "Push subscription registered successfully"
        ),
    }


@router.get("/push-subscriptions")
async def list_push_subscriptions(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    user_agent: Optional[str] = Header(default=None),
    x_ios_safari: Optional[str] = Header(default=None),
    components: AppComponents = Depends(get_components),
):
    if not user_id:
        return error_response("User ID is required", 400)

    try:
        subscriptions = await components.subscription_flow.list(user_id)
    except Exception:
        logger.exception("push_subscriptions_list_failed", user_id=user_id)
        return error_response("Failed to retrieve subscription status.", 500)

    return {
        "subscriptions": [s.to_public_dict() for s in subscriptions],
        "count": len(subscriptions),
        "isIOSSafari": is_ios_safari_request(user_agent, x_ios_safari),
    }


@router.delete("/push-subscriptions")
async def delete_push_subscription(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    endpoint: Optional[str] = Query(default=None),
    components: AppComponents = Depends(get_components),
):
    if not user_id:
        return error_response("User ID is required", 400)
    if not endpoint:
        return error_response("Endpoint is required", 400)

    try:
        await components.subscription_flow.remove(user_id, endpoint)
    except Exception:
        logger.exception("push_subscription_delete_failed", user_id=user_id)
        return error_response("Failed to delete subscription.", 500)

    return {"success": True, "message": "Subscription deleted successfully"}


# =============================================================================
# USERS
# =============================================================================

@router.post("/users/initialize")
async def initialize_user(
    request: Request,
    components: AppComponents = Depends(get_components),
):
    body = await read_json_body(request)
    if not isinstance(body, dict):
        body = {}

    user_id = body.get("UserID")
    if not isinstance(user_id, str) or not user_id.strip():
        return error_response("UserID is required", 400)

    name = body.get("Name")
    try:
        profile, created = await components.user_setup_flow.initialize_user(
            user_id.strip(),
            name=name if isinstance(name, str) else None,
        )
    except UnknownUserError:
        return error_response("Invalid UserID", 400)
    except IdentityServiceError as e:
        logger.error("identity_unavailable", user_id=user_id, error=str(e))
        await components.audit_logger.log_external_service_error(
            service="identity",
            error_message=str(e),
        )
        return error_response(INTERNAL_ERROR, 500)
    except Exception as e:
        logger.exception("user_initialize_failed", user_id=user_id)
        await components.audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
        )
        return error_response(INTERNAL_ERROR, 500)

    return {
        "success": True,
        "message": "User initialized successfully" if created else "User already initialized",
        "userData": profile.to_public_dict(),
    }


# =============================================================================
# RECURRING TRANSACTIONS
# =============================================================================

def serialize_recurring(recurring: RecurringTransaction) -> dict[str, Any]:
    return {
        "id": recurring.id,
        "Amount": float(recurring.amount),
        "Type": recurring.type.value,
        "Category": recurring.category,
        "Notes": recurring.notes,
        "frequency": recurring.frequency.value,
        "nextDueDate": recurring.next_due_date.isoformat(),
        "isActive": recurring.is_active,
        "lastProcessed": recurring.last_processed.isoformat() if recurring.last_processed else None,
    }


@router.post("/recurring-transactions")
async def create_recurring_transaction(
    request: Request,
    components: AppComponents = Depends(get_components),
):
    body = await read_json_body(request)
    if not isinstance(body, dict):
        body = {}

    user_id = body.get("userId")
    if not isinstance(user_id, str) or not user_id.strip():
        return error_response("User ID is required", 400)

    try:
        recurring = RecurringTransaction.model_validate(body)
    except ValidationError as e:
        return error_response(f"Invalid recurring transaction: {e.errors()[0]['msg']}", 400)

    try:
        recurring_id = await components.recurring_flow.create(user_id, recurring)
    except Exception:
        logger.exception("recurring_create_failed", user_id=user_id)
        return error_response(INTERNAL_ERROR, 500)

    return JSONResponse(
        status_code=201,
        content={"success": True, "recurringId": recurring_id},
    )


@router.get("/recurring-transactions")
async def list_recurring_transactions(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    components: AppComponents = Depends(get_components),
):
    if not user_id:
        return error_response("User ID is required", 400)

    try:
        items = await components.recurring_flow.list(user_id)
        upcoming = await components.recurring_flow.upcoming(user_id)
    except Exception:
        logger.exception("recurring_list_failed", user_id=user_id)
        return error_response(INTERNAL_ERROR, 500)

    return {
        "recurringTransactions": [serialize_recurring(r) for r in items],
        "upcoming": [serialize_recurring(r) for r in upcoming],
    }


@router.post("/recurring-transactions/process")
async def process_recurring_transactions(
    request: Request,
    components: AppComponents = Depends(get_components),
):
    """Post every due recurring transaction for the user."""
    body = await read_json_body(request)
    user_id = body.get("userId") if isinstance(body, dict) else None
    if not isinstance(user_id, str) or not user_id.strip():
        return error_response("User ID is required", 400)

    try:
        created = await components.recurring_flow.process_due(user_id)
    except Exception as e:
        logger.exception("recurring_process_failed", user_id=user_id)
        await components.audit_logger.log_error(
            error_type=type(e).__name__,
            error_message=str(e),
        )
        return error_response(INTERNAL_ERROR, 500)

    return {"success": True, "processed": len(created), "transactionIds": created}


# =============================================================================
# SAVINGS
# =============================================================================

@router.get("/savings")
async def savings_summary(
    user_id: Optional[str] = Query(default=None, alias="userId"),
    date_range: str = Query(default="month", alias="range"),
    components: AppComponents = Depends(get_components),
):
    if not user_id:
        return error_response("User ID is required", 400)

    try:
        report = await components.savings_flow.report(user_id, date_range)
    except Exception:
        logger.exception("savings_report_failed", user_id=user_id)
        return error_response(INTERNAL_ERROR, 500)

    return serialize_report(report)


@router.get("/health")
async def health(components: AppComponents = Depends(get_components)):
    """Which backend is live and which settings sections are configured."""
    return {
        "status": "ok",
        "storageBackend": components.storage_backend,
        "pushConfigured": components.notifier.is_configured,
        "configuration": validate_all_settings(),
    }
