from django.urls import path

from . import views

urlpatterns = [
    path("health/", views.HealthView.as_view(), name="health"),

    path("auth/signup/", views.SignupView.as_view(), name="signup"),
    path("auth/login/", views.LoginView.as_view(), name="login"),

    path("factories/", views.FactoryListView.as_view(), name="factory-list"),
    path("factories/<str:factory_id>/", views.FactoryDetailView.as_view(), name="factory-detail"),
    path("factories/<str:factory_id>/balance/", views.FactoryBalanceView.as_view(), name="factory-balance"),
    path("factories/<str:factory_id>/energy-status/", views.EnergyStatusView.as_view(), name="factory-energy-status"),
    path("factories/<str:factory_id>/available-energy/", views.AvailableEnergyView.as_view(), name="factory-available-energy"),
    path("factories/<str:factory_id>/daily-consumption/", views.DailyConsumptionView.as_view(), name="factory-daily-consumption"),
    path("factories/<str:factory_id>/history/", views.FactoryHistoryView.as_view(), name="factory-history"),
    path("factories/<str:factory_id>/energy/", views.EnergyReadingsView.as_view(), name="factory-energy-readings"),

    path("energy/mint/", views.MintEnergyView.as_view(), name="energy-mint"),
    path("energy/transfer/", views.TransferEnergyView.as_view(), name="energy-transfer"),

    path("trades/", views.TradeListView.as_view(), name="trade-list"),
    path("trades/<str:trade_id>/", views.TradeDetailView.as_view(), name="trade-detail"),
    path("trades/<str:trade_id>/execute/", views.ExecuteTradeView.as_view(), name="trade-execute"),
    path("trades/<str:trade_id>/cancel/", views.CancelTradeView.as_view(), name="trade-cancel"),

    path("offers/", views.OfferListView.as_view(), name="offer-list"),
    path("offers/<str:offer_id>/", views.OfferDetailView.as_view(), name="offer-detail"),
    path("offers/<str:offer_id>/status/", views.OfferStatusView.as_view(), name="offer-status"),
]
