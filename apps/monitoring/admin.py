from django.contrib import admin

from .models import StoredState


@admin.register(StoredState)
class StoredStateAdmin(admin.ModelAdmin):
    list_display = ('key', 'updated_at')
    search_fields = ('key',)
    readonly_fields = ('updated_at',)
