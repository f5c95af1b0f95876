"""
Group and direct chat with scheduled delivery.

Messages are submitted through chat.services.MessageService. One whose
time has come is stored delivered and pushed over WebSockets
(chat.fanout, chat.consumers); one scheduled for later waits until the
reconciler in chat.delivery promotes it, driven by the Celery task in
chat.tasks or by the run_delivery_reconciler command.
"""
