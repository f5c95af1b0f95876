"""
Infrastructure shared by the authentication and chat apps: the
timestamped BaseModel, SoftDeleteMixin, the ServiceResult/BaseService
service pattern, the application exception hierarchy with its DRF
exception handler, and the health check view. Nothing here knows about
conversations or messages.
"""
