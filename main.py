"""
FastAPI Application for the Order Lifecycle Service.

Exposes cancellation, return, tracking and status endpoints over the
order service, plus session login for storefront users and admins.
"""

import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from config import settings

# Import shared Cosmos DB configuration
from shared.cosmos_config import COSMOS_ENDPOINT, DATABASE_NAME

# Import authentication module
from auth import (
    Caller,
    LoginRequest,
    LoginResponse,
    create_session,
    delete_session,
    get_caller_from_token,
    verify_password,
)

from use_cases.orders import OrderLifecycleEngine, OrderRules, OrderService, get_order_client
from use_cases.orders.domain import (
    CancellationNotFoundError,
    InvalidStatusTransitionError,
    OrderCancellationError,
    OrderError,
    OrderNotFoundError,
    OrderPermissionError,
    OrderReturnError,
    OrderValidationError,
    ProductCondition,
    ReturnNotFoundError,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

# Reduce Azure SDK logging verbosity
logging.getLogger("azure.cosmos").setLevel(logging.WARNING)
logging.getLogger("azure.core").setLevel(logging.WARNING)
logging.getLogger("azure.identity").setLevel(logging.WARNING)

# Global instance
order_service: Optional[OrderService] = None


def build_order_service() -> OrderService:
    """Wire the order service to Cosmos DB using the configured business rules."""
    engine = OrderLifecycleEngine(OrderRules.from_settings(settings))
    return OrderService(
        get_order_client(),
        engine,
        order_expiry_hours=settings.order_expiry_hours,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager - handles startup and shutdown."""
    global order_service

    logger.info("Starting Order Lifecycle Service...")

    # Eager-load the Cosmos client so the first request does not pay for it
    order_service = build_order_service()
    logger.info(f"Order service ready: {COSMOS_ENDPOINT} / {DATABASE_NAME}")

    yield

    logger.info("Shutting down...")


# Create FastAPI app
app = FastAPI(
    title="Order Lifecycle Service",
    description="Cancellation, return, tracking and status rules for storefront orders",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc"
)

# CORS middleware for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Restrict in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_order_service() -> OrderService:
    global order_service
    if order_service is None:
        order_service = build_order_service()
    return order_service


def get_auth_token(request: Request) -> Optional[str]:
    """Token from the X-Auth-Token header, a bearer token, or the auth_token cookie."""
    token = request.headers.get("X-Auth-Token")
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[len("Bearer "):]
    if not token:
        token = request.cookies.get("auth_token")
    return token or None


def get_caller(request: Request) -> Caller:
    caller = get_caller_from_token(get_auth_token(request))
    if caller is None:
        raise HTTPException(status_code=401, detail="User must be authenticated")
    return caller


# =============================================================================
# ERROR HANDLING
# =============================================================================

ERROR_STATUS_CODES = [
    ((OrderNotFoundError, CancellationNotFoundError, ReturnNotFoundError), 404),
    ((OrderPermissionError,), 403),
    ((InvalidStatusTransitionError, OrderCancellationError, OrderReturnError), 409),
    ((OrderValidationError,), 400),
]


def status_code_for(error: OrderError) -> int:
    for error_types, status_code in ERROR_STATUS_CODES:
        if isinstance(error, error_types):
            return status_code
    return 400


@app.exception_handler(OrderError)
async def order_error_handler(request: Request, exc: OrderError):
    content = {"error": exc.code, "message": exc.message}
    if isinstance(exc, OrderValidationError) and exc.errors:
        content["errors"] = [
            {"field": e.field, "message": e.message, "code": e.code} for e in exc.errors
        ]
    if isinstance(exc, InvalidStatusTransitionError):
        content["current_status"] = exc.current_status
        content["requested_status"] = exc.requested_status
    status_code = status_code_for(exc)
    logger.info(f"{request.method} {request.url.path} -> {status_code} {exc.code}: {exc.message}")
    return JSONResponse(status_code=status_code, content=content)


# =============================================================================
# REQUEST MODELS
# =============================================================================

class StatusUpdateRequest(BaseModel):
    status: str
    note: Optional[str] = None


class CancellationRequestBody(BaseModel):
    reason: str
    notes: str = ""


class CancellationDecisionRequest(BaseModel):
    approved: bool
    admin_notes: Optional[str] = None


class ReturnItemBody(BaseModel):
    order_item_id: str
    quantity: int
    condition: ProductCondition = ProductCondition.NEW


class ReturnRequestBody(BaseModel):
    items: List[ReturnItemBody]
    reason: str
    notes: str = ""
    photos: List[str] = Field(default_factory=list)


class ReturnStatusRequest(BaseModel):
    status: str
    notes: Optional[str] = None


class TrackingUpdateRequest(BaseModel):
    tracking_number: str
    carrier: str
    status: str
    location: Optional[str] = None
    description: Optional[str] = None


class ShippingInfoRequest(BaseModel):
    tracking_number: str
    carrier: str


class NoteRequest(BaseModel):
    note: str


# =============================================================================
# HEALTH
# =============================================================================

@app.get("/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "service": "order_lifecycle",
        "app": settings.app_name,
        "app_url": settings.app_url,
        "cosmos_db": COSMOS_ENDPOINT,
    }


# =============================================================================
# AUTHENTICATION ENDPOINTS
# =============================================================================

@app.post("/api/auth/login")
def login(request: LoginRequest, service: OrderService = Depends(get_order_service)):
    """
    Authenticate user with email and password.
    Returns a session token on success.
    """
    try:
        user = service.repository.get_user_by_email(request.email)

        if not user or not verify_password(request.password, user.get("password_hash", "")):
            return LoginResponse(
                success=False,
                message="Invalid email or password",
            )

        token = create_session(user)

        # Return user info (excluding sensitive data)
        user_info = {
            "id": user["id"],
            "email": user["email"],
            "display_name": user.get("display_name", ""),
            "role": user.get("role", "USER"),
        }

        logger.info(f"User logged in: {user['email']}")

        return LoginResponse(
            success=True,
            message="Login successful",
            token=token,
            user=user_info,
        )

    except Exception as e:
        logger.error(f"Login error: {e}", exc_info=True)
        return LoginResponse(
            success=False,
            message="An error occurred during login",
        )


@app.post("/api/auth/logout")
async def logout(request: Request):
    """
    Log out the current user by invalidating their session.
    """
    token = get_auth_token(request)

    if token and delete_session(token):
        return {"success": True, "message": "Logged out successfully"}

    return {"success": True, "message": "No active session"}


@app.get("/api/auth/me")
async def get_current_user(request: Request):
    """
    Get the current logged-in user's info.
    """
    caller = get_caller_from_token(get_auth_token(request))
    if caller is None:
        return {"authenticated": False, "user": None}

    return {
        "authenticated": True,
        "user": {
            "id": caller.user_id,
            "email": caller.email,
            "role": caller.role,
        }
    }


# =============================================================================
# ORDER ENDPOINTS
# =============================================================================

@app.get("/api/orders/{order_id}")
def get_order(
    order_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    """Order with its full event timeline."""
    return service.get_order(caller, order_id).to_dict()


@app.get("/api/orders/{order_id}/tracking")
def get_tracking(
    order_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return service.get_tracking(caller, order_id)


@app.post("/api/orders/{order_id}/notes", status_code=201)
def add_order_note(
    order_id: str,
    body: NoteRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    service.add_note(caller, order_id, body.note)
    return {"success": True}


@app.get("/api/orders/{order_id}/cancellation-eligibility")
def cancellation_eligibility(
    order_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return service.check_cancellation(caller, order_id).to_dict()


@app.get("/api/orders/{order_id}/return-eligibility")
def return_eligibility(
    order_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return service.check_return(caller, order_id).to_dict()


@app.post("/api/orders/{order_id}/status")
def update_order_status(
    order_id: str,
    body: StatusUpdateRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    new_status = service.update_status(caller, order_id, body.status, body.note)
    return {"success": True, "new_status": new_status.value}


@app.post("/api/orders/{order_id}/cancellations", status_code=201)
def request_cancellation(
    order_id: str,
    body: CancellationRequestBody,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    cancellation = service.request_cancellation(caller, order_id, body.reason, body.notes)
    return cancellation.to_dict()


@app.get("/api/cancellations/{cancellation_id}")
def get_cancellation(
    cancellation_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return service.get_cancellation(caller, cancellation_id).to_dict()


@app.post("/api/cancellations/{cancellation_id}/decision")
def decide_cancellation(
    cancellation_id: str,
    body: CancellationDecisionRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    cancellation = service.process_cancellation(
        caller, cancellation_id, body.approved, body.admin_notes
    )
    return cancellation.to_dict()


@app.post("/api/orders/{order_id}/returns", status_code=201)
def request_return(
    order_id: str,
    body: ReturnRequestBody,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return_request = service.request_return(
        caller,
        order_id,
        [item.model_dump() for item in body.items],
        body.reason,
        body.notes,
        body.photos,
    )
    return return_request.to_dict()


@app.post("/api/orders/{order_id}/tracking")
def update_tracking(
    order_id: str,
    body: TrackingUpdateRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    new_status = service.update_tracking(
        caller,
        order_id,
        body.tracking_number,
        body.carrier,
        body.status,
        location=body.location,
        description=body.description,
    )
    return {"success": True, "status": new_status.value}


@app.post("/api/orders/{order_id}/shipping")
def update_shipping_info(
    order_id: str,
    body: ShippingInfoRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    tracking_url = service.update_shipping_info(
        caller, order_id, body.tracking_number, body.carrier
    )
    return {"success": True, "tracking_url": tracking_url}


# =============================================================================
# RETURN ENDPOINTS
# =============================================================================

@app.get("/api/returns")
def list_returns(
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return [r.to_dict() for r in service.list_returns(caller)]


@app.get("/api/returns/{return_id}")
def get_return(
    return_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return service.get_return(caller, return_id).to_dict()


@app.get("/api/returns/{return_id}/refund")
def return_refund(
    return_id: str,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return service.calculate_return_refund(caller, return_id).to_dict()


@app.post("/api/returns/{return_id}/status")
def update_return_status(
    return_id: str,
    body: ReturnStatusRequest,
    caller: Caller = Depends(get_caller),
    service: OrderService = Depends(get_order_service),
):
    return_request = service.update_return_status(caller, return_id, body.status, body.notes)
    return return_request.to_dict()


@app.get("/api/return-policy")
def return_policy(service: OrderService = Depends(get_order_service)):
    return {
        "policy": service.engine.get_return_policy(),
        "support_email": settings.support_email,
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.app_host,
        port=settings.app_port,
        reload=False,
        log_level=settings.log_level.lower()
    )
