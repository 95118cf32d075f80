import logging

from django.conf import settings
from django.db.models import Sum
from django.http import HttpResponse
from django.shortcuts import render
from django.utils import timezone
from django.views.decorators.cache import cache_control
from django.views.decorators.clickjacking import xframe_options_exempt

from .interactions import liked_post_ids
from .models import Category, Post
from .visuals import build_visual_document, slot_id_for

logger = logging.getLogger(__name__)

SORT_OPTIONS = (
    ('date', 'Newest'),
    ('views', 'Most viewed'),
    ('likes', 'Most liked'),
    ('category', 'Category'),
)


def select_initial_post(posts, slug):
    """Index of the post matching ``slug``; the first post when there is no match."""
    if slug:
        for index, post in enumerate(posts):
            if post.slug == slug:
                return index
    return 0


def feed(request):
    posts = list(Post.objects.newest())
    slug = request.GET.get('post')
    initial_index = select_initial_post(posts, slug)
    if slug and posts and posts[initial_index].slug != slug:
        logger.info(f"Deep link to unknown post '{slug}', showing the first post")

    return render(request, 'feed/feed.html', {
        'posts': posts,
        'slots': [(post, slot_id_for(post)) for post in posts],
        'initial_index': initial_index,
        'requested_slug': slug,
        'liked_ids': liked_post_ids(request.user, posts),
    })


def home(request):
    category_slug = request.GET.get('category') or None
    query = request.GET.get('q', '')
    sort = request.GET.get('sort', 'date')
    if sort not in dict(SORT_OPTIONS):
        sort = 'date'

    posts = Post.objects.in_category(category_slug).search(query).sorted_by(sort)
    return render(request, 'feed/home.html', {
        'posts': posts,
        'categories': Category.objects.all(),
        'selected_category': category_slug,
        'query': query,
        'sort': sort,
        'sort_options': SORT_OPTIONS,
        'liked_ids': liked_post_ids(request.user, posts),
    })


def categories(request):
    stats = list(Category.objects.with_stats().order_by('-total_views', 'name'))
    selected = None
    category_posts = []
    selected_id = request.GET.get('category')
    if selected_id:
        selected = next((c for c in stats if str(c.pk) == selected_id), None)
        if selected is not None:
            category_posts = selected.posts.order_by('-views_count', '-created_at')

    return render(request, 'feed/categories.html', {
        'categories': stats,
        'total_views': sum(c.total_views for c in stats),
        'total_posts': sum(c.post_count for c in stats),
        'selected': selected,
        'category_posts': category_posts,
    })


@xframe_options_exempt
def embed(request, slug):
    posts = Post.objects.filter(slug=slug)
    post_type = request.GET.get('type')
    if post_type:
        posts = posts.filter(type=post_type)
    post = posts.first()

    if post is None:
        logger.info(f"Embed requested for missing post '{slug}' (type={post_type!r})")
        return render(request, 'feed/embed_not_found.html', status=404)

    return render(request, 'feed/embed.html', {
        'post': post,
        'slot_id': slot_id_for(post),
        'site_url': f"{settings.SITE_BASE_URL}/?post={post.slug}",
    })


@xframe_options_exempt
def visual(request, slug):
    post = Post.objects.filter(slug=slug).first()
    if post is None:
        return HttpResponse('Visualization not found', status=404, content_type='text/plain')

    response = HttpResponse(build_visual_document(post, request.GET.get('slot')))
    # Opened directly, the document still runs in an opaque origin
    response['Content-Security-Policy'] = 'sandbox allow-scripts'
    return response


def sitemap_tree(request):
    posts = Post.objects.newest()
    totals = posts.aggregate(likes=Sum('likes_count'), comments=Sum('comments_count'))
    return render(request, 'feed/sitemap_tree.html', {
        'posts': posts,
        'base_url': settings.SITE_BASE_URL,
        'total_likes': totals['likes'] or 0,
        'total_comments': totals['comments'] or 0,
    })


@cache_control(public=True, max_age=3600, s_maxage=3600)
def sitemap_xml(request):
    posts = Post.objects.order_by('-created_at').only('slug', 'created_at')
    return render(request, 'feed/sitemap.xml', {
        'base_url': settings.SITE_BASE_URL,
        'now': timezone.now(),
        'posts': posts,
    }, content_type='application/xml')
