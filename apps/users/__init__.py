"""Users app package.

Defines the custom email-login user model with customer, business owner
and administrator roles, JWT authentication flows and password resets.
Use ``apps.users.models.CustomUser`` as the AUTH_USER_MODEL throughout
the project.
"""
