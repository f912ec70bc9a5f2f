from fastapi import APIRouter, Depends
from app.configs.app_settings import Settings, get_settings
from app.configs.flutterwave_config import FlutterwaveClient
from app.models.payment_models import CheckoutRequest, CheckoutSessionResponse
from app.models.user_models import AuthenticatedUser
from app.routes.flutterwave_webhook_route import get_flutterwave_client
from app.services.checkout_services import CheckoutService
from app.utils.user_auth import get_current_user

payments_router = APIRouter(prefix="/payments", tags=["Payments"])


async def get_checkout_service(
    settings: Settings = Depends(get_settings), flutterwave_client: FlutterwaveClient = Depends(get_flutterwave_client)
) -> CheckoutService:
    """Dependency to get CheckoutService instance"""
    return CheckoutService(settings, flutterwave_client)


#########################################################################################################################


@payments_router.post("/checkout", response_model=CheckoutSessionResponse)
async def create_checkout(
    request: CheckoutRequest,
    user: AuthenticatedUser = Depends(get_current_user),
    checkout_service: CheckoutService = Depends(get_checkout_service),
):
    """Create a Flutterwave checkout link for a plan purchase"""
    return await checkout_service.create_checkout_session(user, request)
