"""
API Layer — Energy Trading Endpoints (Django REST Framework)

Thin controllers. Each view pulls fields out of the request, delegates to an
application use case and translates domain exceptions into HTTP responses:

- InvalidArgument     -> 400
- InvalidCredentials  -> 401
- NotFound            -> 404
- Conflict            -> 409
- InsufficientFunds   -> 422
- Throttled           -> 429 (raised by the DRF throttles)
- Unavailable         -> 503

No business rules live here. Amounts are rendered as decimal strings so that
clients never see a float approximation of a balance.
"""

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import APIView

from energy_trading.domain.exceptions import (
    Conflict,
    InsufficientFunds,
    InvalidArgument,
    InvalidCredentials,
    NotFound,
    Unavailable,
)
from energy_trading.domain.values import BalanceKind
from energy_trading.services import (
    get_factory_accounts,
    get_ledger,
    get_offer_board,
    get_trade_service,
)
from energy_trading.throttling import LoginAttemptThrottle, SignupAttemptThrottle

_ERROR_STATUS = [
    (InvalidCredentials, status.HTTP_401_UNAUTHORIZED),
    (InvalidArgument, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (Conflict, status.HTTP_409_CONFLICT),
    (InsufficientFunds, status.HTTP_422_UNPROCESSABLE_ENTITY),
    (Unavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def error_response(exc):
    for kind, code in _ERROR_STATUS:
        if isinstance(exc, kind):
            return Response({"error": str(exc)}, status=code)
    raise exc


def _amount(value):
    return None if value is None else str(value)


def _timestamp(value):
    return None if value is None else value.isoformat()


def balance_data(balances):
    return {
        "factory_id": balances.factory_id,
        "energy_balance": _amount(balances.energy),
        "currency_balance": _amount(balances.currency),
        "available_energy": _amount(balances.available_energy),
        "daily_consumption": _amount(balances.daily_consumption),
        "current_generation": _amount(balances.current_generation),
        "current_consumption": _amount(balances.current_consumption),
        "updated_at": _timestamp(balances.updated_at),
    }


def factory_data(profile, balances=None):
    data = {
        "factory_id": profile.factory_id,
        "name": profile.name,
        "energy_type": profile.energy_type,
        "email": profile.email,
        "localisation": profile.localisation,
        "fiscal_matricule": profile.fiscal_matricule,
        "energy_capacity": _amount(profile.energy_capacity),
        "contact_info": profile.contact_info,
        "created_at": _timestamp(profile.created_at),
    }
    if balances is not None:
        data["balances"] = balance_data(balances)
    return data


def trade_data(trade):
    return {
        "trade_id": trade.trade_id,
        "seller_id": trade.seller_id,
        "buyer_id": trade.buyer_id,
        "energy_amount": _amount(trade.energy_amount),
        "price_per_unit": _amount(trade.price_per_unit),
        "total_price": _amount(trade.total_price),
        "status": trade.status.value,
        "created_at": _timestamp(trade.created_at),
        "completed_at": _timestamp(trade.completed_at),
        "cancelled_at": _timestamp(trade.cancelled_at),
    }


def offer_data(offer):
    return {
        "offer_id": offer.offer_id,
        "factory_id": offer.factory_id,
        "offer_type": offer.offer_type.value,
        "energy_amount": _amount(offer.energy_amount),
        "price_per_kwh": _amount(offer.price_per_kwh),
        "status": offer.status.value,
        "created_at": _timestamp(offer.created_at),
        "updated_at": _timestamp(offer.updated_at),
    }


def movement_data(movement):
    return {
        "kind": movement.kind.value,
        "delta": _amount(movement.delta),
        "balance_after": _amount(movement.balance_after),
        "reason": movement.reason.value,
        "trade_id": movement.trade_id,
        "created_at": _timestamp(movement.created_at),
    }


class HealthView(APIView):

    def get(self, request):
        return Response({
            "status": "OK",
            "message": "Energy Trading API is running",
            "timestamp": timezone.now().isoformat(),
        })


# Authentication

class SignupView(APIView):
    """
    POST /api/auth/signup/

    Rate limited per client. Creates a factory with the configured default
    balances and a hashed password.
    """

    throttle_classes = [SignupAttemptThrottle]

    def post(self, request):
        data = request.data
        try:
            profile, balances = get_factory_accounts().signup(
                email=data.get("email"),
                password=data.get("password"),
                factory_name=data.get("factory_name"),
                fiscal_matricule=data.get("fiscal_matricule"),
                localisation=data.get("localisation", ""),
                energy_capacity=data.get("energy_capacity"),
                contact_info=data.get("contact_info", ""),
                energy_source=data.get("energy_source"),
            )
        except Conflict:
            return Response(
                {"error": "Email or Fiscal Matricule already exists."},
                status=status.HTTP_409_CONFLICT,
            )
        except (InvalidArgument, Unavailable) as exc:
            return error_response(exc)

        return Response(
            {"message": "Factory registered successfully!", "factory": factory_data(profile, balances)},
            status=status.HTTP_201_CREATED,
        )


class LoginView(APIView):
    """
    POST /api/auth/login/

    Rate limited per client. Unknown email and wrong password produce the
    same 401 response.
    """

    throttle_classes = [LoginAttemptThrottle]

    def post(self, request):
        try:
            profile = get_factory_accounts().authenticate(
                request.data.get("email"),
                request.data.get("password"),
            )
        except (InvalidArgument, Unavailable) as exc:
            return error_response(exc)

        return Response({"message": "Login successful!", "factory": factory_data(profile)})


# Factories

class FactoryListView(APIView):

    def get(self, request):
        try:
            factories = get_factory_accounts().list()
        except Unavailable as exc:
            return error_response(exc)
        return Response({
            "count": len(factories),
            "data": [factory_data(profile, balances) for profile, balances in factories],
        })

    def post(self, request):
        data = request.data
        try:
            profile, balances = get_factory_accounts().register(
                factory_id=data.get("factory_id"),
                name=data.get("name"),
                initial_energy=data.get("initial_balance"),
                energy_type=data.get("energy_type"),
                currency=data.get("currency_balance"),
                daily_consumption=data.get("daily_consumption"),
                available_energy=data.get("available_energy"),
            )
        except (InvalidArgument, Conflict, Unavailable) as exc:
            return error_response(exc)

        return Response(factory_data(profile, balances), status=status.HTTP_201_CREATED)


class FactoryDetailView(APIView):

    def get(self, request, factory_id):
        try:
            profile, balances = get_factory_accounts().get(factory_id)
        except (NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(factory_data(profile, balances))


class FactoryBalanceView(APIView):

    def get(self, request, factory_id):
        try:
            balances = get_ledger().get_balances(factory_id)
        except (NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(balance_data(balances))


class EnergyStatusView(APIView):

    def get(self, request, factory_id):
        try:
            report = get_ledger().energy_status(factory_id)
        except (NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response({
            "factory_id": report["factory_id"],
            "available_energy": _amount(report["available_energy"]),
            "daily_consumption": _amount(report["daily_consumption"]),
            "difference": _amount(report["difference"]),
            "status": report["status"],
        })


class AvailableEnergyView(APIView):

    def put(self, request, factory_id):
        try:
            balances = get_ledger().set_available_energy(
                factory_id, request.data.get("available_energy"),
            )
        except (InvalidArgument, NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(balance_data(balances))


class DailyConsumptionView(APIView):

    def put(self, request, factory_id):
        try:
            balances = get_ledger().set_daily_consumption(
                factory_id, request.data.get("daily_consumption"),
            )
        except (InvalidArgument, NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(balance_data(balances))


class EnergyReadingsView(APIView):
    """
    PUT /api/factories/<factory_id>/energy/

    Records the latest generation and consumption readings. An optional
    energy_balance moves the energy balance to that figure as an adjustment.
    """

    def put(self, request, factory_id):
        try:
            balances = get_ledger().record_energy_readings(
                factory_id,
                current_generation=request.data.get("current_generation"),
                current_consumption=request.data.get("current_consumption"),
                energy_balance=request.data.get("energy_balance"),
            )
        except (InvalidArgument, NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(balance_data(balances))


class FactoryHistoryView(APIView):

    def get(self, request, factory_id):
        try:
            movements = get_ledger().history(factory_id)
        except (NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response({"factory_id": factory_id, "data": [movement_data(m) for m in movements]})


# Energy

class MintEnergyView(APIView):

    def post(self, request):
        try:
            balances = get_ledger().mint(
                request.data.get("factory_id"),
                request.data.get("amount"),
            )
        except (InvalidArgument, NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(balance_data(balances))


class TransferEnergyView(APIView):

    def post(self, request):
        try:
            source, target = get_ledger().transfer(
                request.data.get("from_factory_id"),
                request.data.get("to_factory_id"),
                BalanceKind.ENERGY,
                request.data.get("amount"),
            )
        except (InvalidArgument, NotFound, InsufficientFunds, Unavailable) as exc:
            return error_response(exc)
        return Response({"from": balance_data(source), "to": balance_data(target)})


# Trades

class TradeListView(APIView):

    def get(self, request):
        try:
            trades = get_trade_service().list(
                status=request.query_params.get("status"),
                factory_id=request.query_params.get("factory_id"),
            )
        except (InvalidArgument, Unavailable) as exc:
            return error_response(exc)
        return Response({"count": len(trades), "data": [trade_data(t) for t in trades]})

    def post(self, request):
        data = request.data
        try:
            trade = get_trade_service().create(
                seller_id=data.get("seller_id"),
                buyer_id=data.get("buyer_id"),
                amount=data.get("amount"),
                price_per_unit=data.get("price_per_unit"),
                trade_id=data.get("trade_id"),
            )
        except (InvalidArgument, NotFound, Conflict, Unavailable) as exc:
            return error_response(exc)
        return Response(trade_data(trade), status=status.HTTP_201_CREATED)


class TradeDetailView(APIView):

    def get(self, request, trade_id):
        try:
            trade = get_trade_service().get(trade_id)
        except (NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(trade_data(trade))


class ExecuteTradeView(APIView):
    """
    POST /api/trades/<trade_id>/execute/

    A trade that is unknown or no longer pending answers 404. Insufficient
    energy or currency answers 422 and leaves the trade pending.
    """

    def post(self, request, trade_id):
        try:
            trade = get_trade_service().execute(trade_id)
        except (InvalidArgument, NotFound, InsufficientFunds, Unavailable) as exc:
            return error_response(exc)
        return Response(trade_data(trade))


class CancelTradeView(APIView):

    def post(self, request, trade_id):
        try:
            trade = get_trade_service().cancel(trade_id)
        except (InvalidArgument, NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(trade_data(trade))


# Offers

class OfferListView(APIView):

    def get(self, request):
        try:
            offers = get_offer_board().list_active()
        except Unavailable as exc:
            return error_response(exc)
        return Response({"count": len(offers), "data": [offer_data(o) for o in offers]})

    def post(self, request):
        data = request.data
        try:
            offer = get_offer_board().create(
                factory_id=data.get("factory_id"),
                offer_type=data.get("offer_type"),
                energy_amount=data.get("energy_amount"),
                price_per_kwh=data.get("price_per_kwh"),
                offer_id=data.get("offer_id"),
            )
        except (InvalidArgument, NotFound, Conflict, Unavailable) as exc:
            return error_response(exc)
        return Response(offer_data(offer), status=status.HTTP_201_CREATED)


class OfferDetailView(APIView):

    def get(self, request, offer_id):
        try:
            offer = get_offer_board().get(offer_id)
        except (NotFound, Unavailable) as exc:
            return error_response(exc)
        return Response(offer_data(offer))


class OfferStatusView(APIView):

    def put(self, request, offer_id):
        try:
            offer = get_offer_board().update_status(offer_id, request.data.get("status"))
        except (InvalidArgument, NotFound, Conflict, Unavailable) as exc:
            return error_response(exc)
        return Response(offer_data(offer))
