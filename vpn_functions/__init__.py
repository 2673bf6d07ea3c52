"""
Lambda functions backing the Client VPN certificate and profile custom resources
"""
