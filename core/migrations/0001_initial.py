import django.core.validators
import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Foodtruck',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Public name (HTML tags will be stripped)', max_length=200)),
                ('slug', models.SlugField(blank=True, max_length=220, unique=True)),
                ('email', models.EmailField(blank=True, help_text='Contact email, also used as reply-to', max_length=254)),
                ('phone', models.CharField(blank=True, max_length=20, validators=[django.core.validators.RegexValidator(message="Phone number must be entered in the format: '+999999999'. Up to 15 digits allowed.", regex='^\\+?\\d{9,15}$')])),
                ('is_active', models.BooleanField(default=True)),
                ('auto_accept_orders', models.BooleanField(default=False, help_text='Confirm new orders immediately instead of leaving them pending')),
                ('max_orders_per_slot', models.PositiveIntegerField(blank=True, help_text='Maximum orders per pickup slot (empty = unlimited)', null=True)),
                ('pickup_slot_minutes', models.PositiveIntegerField(default=15, help_text='Length of a pickup slot in minutes', validators=[django.core.validators.MinValueValidator(5)])),
                ('offers_stackable', models.BooleanField(default=True, help_text='Allow item offers and threshold discounts on the same order')),
                ('promo_codes_stackable', models.BooleanField(default=True, help_text='Allow a promo code on top of automatic offers')),
                ('loyalty_enabled', models.BooleanField(default=False)),
                ('loyalty_points_per_euro', models.PositiveIntegerField(default=1, help_text='Points earned per euro spent')),
                ('loyalty_threshold', models.PositiveIntegerField(default=50, help_text='Points needed for one reward', validators=[django.core.validators.MinValueValidator(1)])),
                ('loyalty_reward', models.PositiveIntegerField(default=500, help_text='Reward value in cents')),
                ('loyalty_allow_multiple', models.BooleanField(default=True, help_text='Allow redeeming several rewards on a single order')),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('owner', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='foodtrucks', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'ordering': ['name'],
                'indexes': [
                    models.Index(fields=['owner'], name='core_foodtr_owner_i_3c1a2e_idx'),
                    models.Index(fields=['is_active'], name='core_foodtr_is_acti_8f0b4d_idx'),
                ],
            },
        ),
    ]
