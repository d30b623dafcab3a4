# app/api/socketio/__init__.py

"""
Socket.IO namespaces for real-time features

Active namespaces:
- /alliance: alliance messaging, typing indicators and presence

To add a new namespace:
1. Create a new file: <feature>_namespace.py
2. Inherit from AuthNamespace (handles authentication and the connection registry)
3. Implement optional callbacks:
   - handle_connect(self, sid, user, first_connection) - called after successful auth
   - handle_disconnect(self, sid, user_id, was_last) - called after the connection is unregistered
4. Register it: sio.register_namespace(YourNamespace('/your-path'))
5. Import it here
"""

from infrastructure.socketio_manager import sio, registry

# Import namespaces to register them
from .alliance_namespace import AllianceNamespace


__all__ = ['sio', 'registry', 'AllianceNamespace']
