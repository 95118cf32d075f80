from django.contrib import admin

from . import interactions
from .models import AdminSetting, Category, Comment, ContactMessage, ErrorReport, Post, Profile


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ('name', 'slug')
    prepopulated_fields = {'slug': ('name',)}


@admin.register(Post)
class PostAdmin(admin.ModelAdmin):
    list_display = ('title', 'slug', 'type', 'category', 'likes_count', 'comments_count', 'views_count', 'created_at')
    list_filter = ('type', 'category')
    search_fields = ('title', 'description', 'slug')
    prepopulated_fields = {'slug': ('title',)}
    readonly_fields = ('likes_count', 'comments_count', 'views_count', 'shares_count', 'created_at')
    actions = ['reconcile_counters']

    @admin.action(description='Recompute like and comment counters')
    def reconcile_counters(self, request, queryset):
        fixed = sum(1 for post in queryset if interactions.reconcile_counters(post))
        self.message_user(request, f"{fixed} of {queryset.count()} posts had out-of-sync counters.")


@admin.register(Profile)
class ProfileAdmin(admin.ModelAdmin):
    list_display = ('username', 'user')
    search_fields = ('username', 'user__email')


@admin.register(Comment)
class CommentAdmin(admin.ModelAdmin):
    list_display = ('post', 'author', 'created_at')
    raw_id_fields = ('post', 'author')


@admin.register(ContactMessage)
class ContactMessageAdmin(admin.ModelAdmin):
    list_display = ('subject', 'name', 'email', 'created_at', 'emailed_at')
    readonly_fields = ('created_at', 'emailed_at')


@admin.register(ErrorReport)
class ErrorReportAdmin(admin.ModelAdmin):
    list_display = ('post', 'email', 'created_at', 'emailed_at')
    readonly_fields = ('created_at', 'emailed_at')


@admin.register(AdminSetting)
class AdminSettingAdmin(admin.ModelAdmin):
    list_display = ('setting_key', 'setting_value')
