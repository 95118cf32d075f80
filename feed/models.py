from django.conf import settings
from django.db import models
from django.db.models import Avg, Count, Max, Q, Sum
from django.db.models.functions import Coalesce, Lower


class CategoryQuerySet(models.QuerySet):
    def with_stats(self):
        """Annotate post_count, total_views, avg_views_per_post and last_post_date."""
        return self.annotate(
            post_count=Count('posts'),
            total_views=Coalesce(Sum('posts__views_count'), 0, output_field=models.IntegerField()),
            avg_views_per_post=Coalesce(Avg('posts__views_count'), 0.0, output_field=models.FloatField()),
            last_post_date=Max('posts__created_at'),
        )


class Category(models.Model):
    name = models.CharField(max_length=100)
    slug = models.SlugField(max_length=100, unique=True)
    description = models.TextField(blank=True, default='')

    objects = CategoryQuerySet.as_manager()

    class Meta:
        verbose_name_plural = 'categories'
        ordering = ['name']

    def __str__(self):
        return self.name


class PostQuerySet(models.QuerySet):
    SORT_ORDERINGS = {
        'date': ('-created_at',),
        'views': ('-views_count', '-created_at'),
        'likes': ('-likes_count', '-created_at'),
        'category': (Lower(Coalesce('category__name', models.Value(''))).asc(), '-created_at'),
    }

    def newest(self):
        return self.select_related('category').order_by('-created_at')

    def in_category(self, slug):
        if not slug:
            return self
        return self.filter(category__slug=slug)

    def search(self, query):
        query = (query or '').strip()
        if not query:
            return self
        return self.filter(
            Q(title__icontains=query)
            | Q(description__icontains=query)
            | Q(custom_html__icontains=query)
            | Q(category__name__icontains=query)
        )

    def sorted_by(self, sort):
        ordering = self.SORT_ORDERINGS.get(sort, self.SORT_ORDERINGS['date'])
        return self.select_related('category').order_by(*ordering)


class Post(models.Model):
    CUSTOM = 'custom'
    CESIUM = 'cesium'
    GLOBE = 'globe'
    LEAFLET = 'leaflet'
    POST_TYPES = (
        (CUSTOM, 'Custom'),
        (CESIUM, 'Cesium'),
        (GLOBE, 'Globe'),
        (LEAFLET, 'Leaflet'),
    )

    slug = models.SlugField(max_length=200, unique=True)
    title = models.CharField(max_length=200)
    description = models.TextField(blank=True, default='')
    type = models.CharField(max_length=10, choices=POST_TYPES, default=CUSTOM)
    custom_html = models.TextField(blank=True, default='')
    custom_css = models.TextField(blank=True, default='')
    custom_script = models.TextField(blank=True, default='')
    thumbnail_url = models.URLField(max_length=500, blank=True, default='')
    likes_count = models.PositiveIntegerField(default=0)
    comments_count = models.PositiveIntegerField(default=0)
    views_count = models.PositiveIntegerField(default=0)
    shares_count = models.PositiveIntegerField(default=0)
    category = models.ForeignKey(
        Category, null=True, blank=True, on_delete=models.SET_NULL, related_name='posts'
    )
    external_url = models.URLField(max_length=500, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    objects = PostQuerySet.as_manager()

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.title


class Profile(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL, primary_key=True, on_delete=models.CASCADE, related_name='profile'
    )
    username = models.CharField(max_length=30, unique=True)
    avatar_url = models.URLField(max_length=500, blank=True, default='')

    def __str__(self):
        return self.username


class Interaction(models.Model):
    LIKE = 'like'
    INTERACTION_TYPES = (
        (LIKE, 'Like'),
    )

    user = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='interactions')
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='interactions')
    type = models.CharField(max_length=10, choices=INTERACTION_TYPES, default=LIKE)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ('user', 'post', 'type')


class Comment(models.Model):
    post = models.ForeignKey(Post, on_delete=models.CASCADE, related_name='comments')
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name='comments')
    content = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ['-created_at']

    def __str__(self):
        return self.content[:50]


class ContactMessage(models.Model):
    name = models.CharField(max_length=200)
    email = models.EmailField()
    subject = models.CharField(max_length=200)
    description = models.TextField()
    post = models.ForeignKey(Post, null=True, blank=True, on_delete=models.SET_NULL, related_name='contact_messages')
    created_at = models.DateTimeField(auto_now_add=True)
    emailed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.subject


class ErrorReport(models.Model):
    post = models.ForeignKey(Post, null=True, blank=True, on_delete=models.SET_NULL, related_name='error_reports')
    email = models.EmailField(blank=True, default='')
    description = models.TextField()
    page_url = models.URLField(max_length=500, blank=True, default='')
    user_agent = models.CharField(max_length=500, blank=True, default='')
    created_at = models.DateTimeField(auto_now_add=True)
    emailed_at = models.DateTimeField(null=True, blank=True)

    def __str__(self):
        return self.description[:50]


class AdminSetting(models.Model):
    setting_key = models.CharField(max_length=100, unique=True)
    setting_value = models.TextField(blank=True, default='')

    def __str__(self):
        return self.setting_key

    @classmethod
    def get_value(cls, key, default=None):
        value = cls.objects.filter(setting_key=key).values_list('setting_value', flat=True).first()
        return value or default
