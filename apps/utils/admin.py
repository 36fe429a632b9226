# utils/admin.py

from django.contrib import admin
from .models import FinancialAuditLog


@admin.register(FinancialAuditLog)
class FinancialAuditLogAdmin(admin.ModelAdmin):
    list_display = [
        'timestamp', 'action', 'amount_involved', 'currency',
        'student_name', 'risk_level', 'user_id'
    ]
    list_filter = ['action', 'risk_level', 'is_automated', 'timestamp']
    search_fields = ['student_name', 'student_id', 'object_id', 'batch_id', 'notes']
    readonly_fields = [
        'id', 'timestamp', 'action', 'user_id', 'ip_address', 'object_type',
        'object_id', 'amount_involved', 'currency', 'student_id', 'student_name',
        'risk_level', 'additional_data', 'notes', 'is_automated', 'batch_id'
    ]

    fieldsets = (
        ('What Happened', {
            'fields': ('action', 'object_type', 'object_id', 'amount_involved', 'currency')
        }),
        ('Who', {
            'fields': ('user_id', 'student_id', 'student_name')
        }),
        ('When & Where', {
            'fields': ('timestamp', 'ip_address', 'batch_id', 'is_automated')
        }),
        ('Additional Info', {
            'fields': ('risk_level', 'notes', 'additional_data'),
            'classes': ('collapse',)
        }),
    )

    def has_add_permission(self, request):
        # Audit rows are written by the services only
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
