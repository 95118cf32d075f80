from rest_framework import serializers
from .models import Category, Post, Profile, Comment, ContactMessage, ErrorReport


class CategorySerializer(serializers.ModelSerializer):
    class Meta:
        model = Category
        fields = ('id', 'name', 'slug', 'description')


class CategoryStatsSerializer(serializers.ModelSerializer):
    post_count = serializers.IntegerField(read_only=True)
    total_views = serializers.IntegerField(read_only=True)
    avg_views_per_post = serializers.FloatField(read_only=True)
    last_post_date = serializers.DateTimeField(read_only=True)

    class Meta:
        model = Category
        fields = ('id', 'name', 'slug', 'description', 'post_count', 'total_views',
                  'avg_views_per_post', 'last_post_date')


class PostSerializer(serializers.ModelSerializer):
    category = CategorySerializer(read_only=True)

    class Meta:
        model = Post
        fields = ('id', 'slug', 'title', 'description', 'type', 'thumbnail_url', 'likes_count',
                  'comments_count', 'views_count', 'shares_count', 'category', 'external_url',
                  'created_at')
        read_only_fields = fields


class PostDetailSerializer(PostSerializer):
    class Meta(PostSerializer.Meta):
        fields = PostSerializer.Meta.fields + ('custom_html', 'custom_css', 'custom_script')
        read_only_fields = fields


class ProfileSerializer(serializers.ModelSerializer):
    user_id = serializers.IntegerField(read_only=True)
    email = serializers.EmailField(source='user.email', read_only=True)

    class Meta:
        model = Profile
        fields = ('user_id', 'username', 'avatar_url', 'email')
        read_only_fields = ('user_id', 'email')


class CommentSerializer(serializers.ModelSerializer):
    username = serializers.SerializerMethodField()

    class Meta:
        model = Comment
        fields = ('id', 'post', 'username', 'content', 'created_at')
        read_only_fields = ('id', 'post', 'username', 'created_at')

    def get_username(self, obj):
        profile = getattr(obj.author, 'profile', None)
        return profile.username if profile else obj.author.get_username()

    def validate_content(self, value):
        value = value.strip()
        if not value:
            raise serializers.ValidationError("Comment must not be empty")
        return value


class ContactMessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContactMessage
        fields = ('id', 'name', 'email', 'subject', 'description', 'post', 'created_at')
        read_only_fields = ('id', 'created_at')


class ErrorReportSerializer(serializers.ModelSerializer):
    class Meta:
        model = ErrorReport
        fields = ('id', 'post', 'email', 'description', 'page_url', 'user_agent', 'created_at')
        read_only_fields = ('id', 'created_at')
