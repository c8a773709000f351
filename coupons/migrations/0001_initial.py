import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Coupon',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=64, unique=True)),
                ('name_en', models.CharField(max_length=150)),
                ('name_he', models.CharField(max_length=150)),
                ('description_en', models.TextField(blank=True, null=True)),
                ('description_he', models.TextField(blank=True, null=True)),
                ('discount_type', models.CharField(choices=[('percent_all', 'Percent off entire cart'), ('percent_specific', 'Percent off specific items'), ('fixed', 'Fixed amount'), ('bogo', 'Buy X Get Y')], max_length=20)),
                ('discount_value', models.DecimalField(blank=True, decimal_places=2, help_text='Percent for percentage coupons, currency amount for fixed coupons', max_digits=10, null=True)),
                ('min_cart_value', models.DecimalField(blank=True, decimal_places=2, help_text='Minimum cart subtotal', max_digits=10, null=True)),
                ('start_date', models.DateTimeField(blank=True, help_text='Empty = no start bound', null=True)),
                ('end_date', models.DateTimeField(blank=True, help_text='Empty = never expires', null=True)),
                ('usage_limit', models.PositiveIntegerField(blank=True, help_text='Total usage limit (all users)', null=True)),
                ('usage_limit_per_user', models.PositiveIntegerField(blank=True, help_text='How many times each user can use', null=True)),
                ('usage_count', models.PositiveIntegerField(default=0, help_text='Number of times redeemed globally')),
                ('stackable', models.BooleanField(default=False)),
                ('auto_apply', models.BooleanField(default=False)),
                ('eligible_products', models.JSONField(blank=True, default=list, help_text='SKUs')),
                ('eligible_categories', models.JSONField(blank=True, default=list, help_text='Category ids or slugs')),
                ('bogo_buy_quantity', models.PositiveIntegerField(blank=True, null=True)),
                ('bogo_get_quantity', models.PositiveIntegerField(blank=True, null=True)),
                ('bogo_eligible_skus', models.JSONField(blank=True, default=list)),
                ('is_active', models.BooleanField(default=True)),
                ('created_at', models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'ordering': ['created_at', 'id'],
                'indexes': [models.Index(fields=['is_active', 'auto_apply'], name='coupon_active_auto_idx')],
                'constraints': [models.CheckConstraint(condition=models.Q(('usage_limit__isnull', True), ('usage_count__lte', models.F('usage_limit')), _connector='OR'), name='coupon_usage_within_limit')],
            },
        ),
        migrations.CreateModel(
            name='CouponUserUsage',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('user_identifier', models.CharField(db_index=True, max_length=191)),
                ('usage_count', models.PositiveIntegerField(default=0)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('coupon', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='user_usages', to='coupons.coupon')),
            ],
            options={
                'constraints': [models.UniqueConstraint(fields=('coupon', 'user_identifier'), name='unique_coupon_user_usage')],
            },
        ),
        migrations.CreateModel(
            name='CouponRedemption',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('code', models.CharField(max_length=64)),
                ('user_identifier', models.CharField(blank=True, max_length=191, null=True)),
                ('order_reference', models.CharField(db_index=True, max_length=64)),
                ('discount_amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('redeemed_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('coupon', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='redemptions', to='coupons.coupon')),
            ],
            options={
                'ordering': ['-redeemed_at'],
                'indexes': [models.Index(fields=['coupon', 'user_identifier'], name='redemption_coupon_user_idx')],
                'constraints': [models.UniqueConstraint(fields=('coupon', 'order_reference'), name='unique_coupon_order_redemption')],
            },
        ),
    ]
