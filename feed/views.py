import logging
import os
import time
import traceback

import psutil
import requests
from django.conf import settings
from django.db import connection
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action, api_view
from rest_framework.generics import get_object_or_404
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from . import interactions, mailer
from .models import Category, ContactMessage, ErrorReport, Post
from .serializers import (
    CategorySerializer,
    CategoryStatsSerializer,
    CommentSerializer,
    ContactMessageSerializer,
    ErrorReportSerializer,
    PostDetailSerializer,
    PostSerializer,
    ProfileSerializer,
)

logger = logging.getLogger(__name__)


def get_memory_usage():
    """Get current memory usage in MB"""
    process = psutil.Process(os.getpid())
    return process.memory_info().rss / 1024 / 1024


class PostViewSet(viewsets.ReadOnlyModelViewSet):
    """Posts newest first; ?category=<slug>, ?q=<text> and ?sort=date|views|likes|category."""

    def get_queryset(self):
        params = self.request.query_params
        return (
            Post.objects
            .in_category(params.get('category'))
            .search(params.get('q'))
            .sorted_by(params.get('sort', 'date'))
        )

    def get_serializer_class(self):
        if self.action == 'retrieve':
            return PostDetailSerializer
        if self.action == 'comments':
            return CommentSerializer
        return PostSerializer

    @action(detail=True, methods=['post'], permission_classes=[IsAuthenticated])
    def like(self, request, pk=None):
        post = self.get_object()
        liked, likes_count = interactions.toggle_like(request.user, post)
        return Response({'liked': liked, 'likes_count': likes_count})

    @action(detail=True, methods=['post'], url_path='view')
    def record_view(self, request, pk=None):
        post = self.get_object()
        views_count = interactions.increment_views_count(post)
        return Response({'views_count': views_count})

    @action(detail=True, methods=['post'])
    def share(self, request, pk=None):
        post = self.get_object()
        shares_count = interactions.increment_shares_count(post)
        return Response({'shares_count': shares_count})

    @action(detail=True, methods=['get', 'post'])
    def comments(self, request, pk=None):
        post = self.get_object()
        if request.method == 'GET':
            comments = post.comments.select_related('author__profile').order_by('-created_at')
            return Response(CommentSerializer(comments, many=True).data)

        if not request.user.is_authenticated:
            return Response({'error': 'Authentication required',
                             'summary': 'Sign in to comment'}, status=status.HTTP_403_FORBIDDEN)

        serializer = CommentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        comment = interactions.add_comment(request.user, post, serializer.validated_data['content'])
        data = CommentSerializer(comment).data
        data['comments_count'] = post.comments_count
        return Response(data, status=status.HTTP_201_CREATED)


class CategoryViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Category.objects.all()
    serializer_class = CategorySerializer

    @action(detail=False, methods=['get'])
    def stats(self, request):
        categories = Category.objects.with_stats().order_by('-total_views', 'name')
        data = CategoryStatsSerializer(categories, many=True).data
        return Response({
            'categories': data,
            'total_views': sum(c['total_views'] for c in data),
            'total_posts': sum(c['post_count'] for c in data),
        })

    @action(detail=True, methods=['get'])
    def posts(self, request, pk=None):
        category = self.get_object()
        posts = category.posts.order_by('-views_count', '-created_at')
        return Response(PostSerializer(posts, many=True).data)


class ContactMessageViewSet(mixins.CreateModelMixin, viewsets.GenericViewSet):
    queryset = ContactMessage.objects.all()
    serializer_class = ContactMessageSerializer


class ErrorReportViewSet(mixins.CreateModelMixin, viewsets.GenericViewSet):
    queryset = ErrorReport.objects.all()
    serializer_class = ErrorReportSerializer

    def perform_create(self, serializer):
        user_agent = serializer.validated_data.get('user_agent') or self.request.META.get('HTTP_USER_AGENT', '')
        serializer.save(user_agent=user_agent[:500])


def _dispatch_email(send, record, kind):
    """Send the email for a stored record and translate failures into API responses."""
    start_time = time.time()
    try:
        data = send(record)
    except mailer.MailerConfigError as e:
        logger.error(f"Cannot send {kind} {record.pk}: {e}")
        return Response({
            'error': str(e),
            'summary': 'Mail delivery is not configured',
        }, status=status.HTTP_500_INTERNAL_SERVER_ERROR)
    except mailer.MailerRejectedError as e:
        return Response({
            'error': str(e),
            'summary': 'The mail provider rejected the message',
            'details': {'provider_status': e.status_code},
        }, status=status.HTTP_400_BAD_REQUEST)
    except requests.exceptions.Timeout as e:
        logger.error(f"Timeout sending {kind} {record.pk} after {settings.MAIL_TIMEOUT} seconds: {str(e)}")
        return Response({
            'error': f'Mail API timeout after {settings.MAIL_TIMEOUT} seconds',
            'summary': 'The mail provider took too long to respond',
            'details': {
                'api_endpoint': settings.RESEND_API_URL,
                'timeout': settings.MAIL_TIMEOUT,
                'error_type': 'Timeout',
                'error_message': str(e),
            }
        }, status=status.HTTP_504_GATEWAY_TIMEOUT)
    except requests.exceptions.ConnectionError as e:
        logger.error(f"Connection error sending {kind} {record.pk}: {str(e)}")
        return Response({
            'error': 'Connection error to mail API',
            'summary': 'Could not establish connection to the mail provider',
            'details': {
                'api_endpoint': settings.RESEND_API_URL,
                'error_type': 'ConnectionError',
                'error_message': str(e),
            }
        }, status=status.HTTP_503_SERVICE_UNAVAILABLE)
    except requests.exceptions.RequestException as e:
        logger.error(f"Failed to send {kind} {record.pk}: {str(e)}")
        return Response({
            'error': str(e),
            'summary': 'The mail request failed',
        }, status=status.HTTP_502_BAD_GATEWAY)

    logger.info(f"Sent {kind} {record.pk} in {time.time() - start_time:.2f} seconds")
    return Response({'success': True, 'data': data})


@api_view(['POST'])
def send_contact_message(request):
    message = get_object_or_404(ContactMessage, pk=request.data.get('messageId'))
    return _dispatch_email(mailer.send_contact_message, message, 'contact message')


@api_view(['POST'])
def send_error_report(request):
    report = get_object_or_404(ErrorReport.objects.select_related('post'), pk=request.data.get('reportId'))
    return _dispatch_email(mailer.send_error_report, report, 'error report')


@api_view(['GET'])
def current_user(request):
    if not request.user.is_authenticated:
        return Response({'user': None, 'profile': None})
    profile = getattr(request.user, 'profile', None)
    return Response({
        'user': {'id': request.user.pk, 'email': request.user.email},
        'profile': ProfileSerializer(profile).data if profile else None,
    })


@api_view(['GET'])
def health(request):
    response = {
        'backend': 'running',
        'database': 'not available',
        'tables': [],
        'memory_usage': f"{get_memory_usage():.2f} MB",
    }
    try:
        tables = connection.introspection.table_names()
        response['database'] = 'connected'
        response['tables'] = [t for t in tables if t.startswith('feed_')]
    except Exception as e:
        logger.error(f"Database health check failed: {traceback.format_exc()}")
        response['database'] = f"error: {str(e)[:80]}"
    return Response(response)
