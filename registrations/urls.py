from django.urls import path

from . import views

app_name = "registrations"
urlpatterns = [
    path("register", views.register_view, name="register"),
    path("check-email", views.check_email_view, name="check_email"),
]
