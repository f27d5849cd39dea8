from django.urls import include, path

urlpatterns = [
    path("api/", include("energy_trading.urls")),
]
