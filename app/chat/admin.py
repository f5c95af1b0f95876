"""
Admin for moderating conversations and watching the scheduled queue.
"""

from django.contrib import admin
from django.utils import timezone
from django.utils.text import Truncator

from chat.models import Conversation, DirectConversationPair, Message, Participant


class DeliveryStateFilter(admin.SimpleListFilter):
    title = "delivery state"
    parameter_name = "delivery"

    def lookups(self, request, model_admin):
        return [
            ("delivered", "Delivered"),
            ("pending", "Pending"),
            ("due", "Due, not delivered"),
            ("failing", "Failed attempts"),
        ]

    def queryset(self, request, queryset):
        now = timezone.now()
        state = self.value()
        if state == "delivered":
            return queryset.delivered()
        if state == "pending":
            return queryset.pending(now)
        if state == "due":
            return queryset.due(now)
        if state == "failing":
            return queryset.exclude(scheduled_for=None).filter(delivery_attempts__gt=0)
        return queryset


class ParticipantInline(admin.TabularInline):
    model = Participant
    extra = 0
    fields = ["user", "role", "joined_at", "left_at", "left_voluntarily", "removed_by", "last_read_at"]
    readonly_fields = ["joined_at", "left_at", "left_voluntarily", "removed_by", "last_read_at"]
    raw_id_fields = ["user", "removed_by"]


@admin.register(Conversation)
class ConversationAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation_type", "title", "participant_count", "last_message_at", "is_deleted"]
    list_filter = ["conversation_type", "is_deleted"]
    search_fields = ["=id", "title"]
    readonly_fields = ["participant_count", "latest_message", "last_message_at", "deleted_at", "created_at", "updated_at"]
    raw_id_fields = ["created_by"]
    inlines = [ParticipantInline]
    ordering = ["-updated_at"]


@admin.register(DirectConversationPair)
class DirectConversationPairAdmin(admin.ModelAdmin):
    list_display = ["conversation", "user_lower", "user_higher"]
    raw_id_fields = ["conversation", "user_lower", "user_higher"]


@admin.register(Participant)
class ParticipantAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation", "user", "role", "joined_at", "left_at"]
    list_filter = ["role", "left_voluntarily"]
    search_fields = ["user__email", "conversation__title"]
    readonly_fields = ["joined_at", "created_at", "updated_at"]
    raw_id_fields = ["conversation", "user", "removed_by"]
    ordering = ["-joined_at"]


@admin.register(Message)
class MessageAdmin(admin.ModelAdmin):
    list_display = ["id", "conversation", "sender", "preview", "scheduled_for", "delivery_attempts", "created_at"]
    list_filter = [DeliveryStateFilter]
    search_fields = ["content", "sender__email"]
    readonly_fields = ["delivery_attempts", "last_delivery_error", "created_at", "updated_at"]
    raw_id_fields = ["conversation", "sender"]
    filter_horizontal = ["read_by"]
    ordering = ["-created_at"]

    @admin.display(description="Content")
    def preview(self, obj: Message) -> str:
        return Truncator(obj.content).chars(50)
