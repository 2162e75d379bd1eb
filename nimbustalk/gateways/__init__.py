"""
Gateway Layer Package.

Translates local operations into calls against the hosted backend and
normalises every failure into a ``GatewayError``/``ErrorKind``.

Usage:
    from nimbustalk.gateways.auth_gateway import AuthGateway
    from nimbustalk.gateways.profile_gateway import ProfileGateway
"""
