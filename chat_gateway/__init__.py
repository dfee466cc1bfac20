"""
Chat Gateway.

FastAPI WebSocket server relaying chat messages and presence between
connected clients.
"""
