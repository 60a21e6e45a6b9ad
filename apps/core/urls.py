# apps/core/urls.py

from django.urls import path
from . import views

app_name = 'core'

urlpatterns = [
    # === MONITORING ===
    path('health', views.health_check, name='health'),

    # === AUTH ===
    path('auth/signup', views.signup, name='signup'),
    path('auth/signin', views.signin, name='signin'),
    path('auth/signout', views.signout, name='signout'),
    path('auth/session', views.session, name='session'),
]
