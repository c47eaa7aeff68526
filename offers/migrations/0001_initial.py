import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('menu', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Offer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=128)),
                ('description', models.TextField(blank=True, max_length=500)),
                ('offer_type', models.CharField(choices=[('bundle', 'Bundle'), ('buy_x_get_y', 'Buy X get Y'), ('promo_code', 'Promo code'), ('threshold_discount', 'Threshold discount')], max_length=32)),
                ('config', models.JSONField(default=dict, help_text='Type-specific settings, amounts in cents')),
                ('is_active', models.BooleanField(default=True)),
                ('start_date', models.DateTimeField(blank=True, null=True)),
                ('end_date', models.DateTimeField(blank=True, null=True)),
                ('time_start', models.TimeField(blank=True, help_text='Daily start (pickup time)', null=True)),
                ('time_end', models.TimeField(blank=True, help_text='Daily end, inclusive', null=True)),
                ('days_of_week', models.JSONField(blank=True, help_text='Allowed pickup days, 0 = Sunday ... 6 = Saturday (empty = every day)', null=True)),
                ('max_uses', models.PositiveIntegerField(blank=True, help_text='Maximum applications across all orders', null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('max_uses_per_customer', models.PositiveIntegerField(blank=True, help_text='Maximum orders per customer email using this offer', null=True, validators=[django.core.validators.MinValueValidator(1)])),
                ('current_uses', models.PositiveIntegerField(default=0)),
                ('total_discount_given', models.PositiveIntegerField(default=0, help_text='Cents')),
                ('display_order', models.IntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('foodtruck', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offers', to='core.foodtruck')),
            ],
            options={
                'ordering': ['display_order', '-created_at'],
                'indexes': [
                    models.Index(fields=['foodtruck', 'is_active'], name='offer_ft_active_idx'),
                    models.Index(fields=['offer_type'], name='offer_type_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OfferItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('role', models.CharField(choices=[('trigger', 'Trigger'), ('reward', 'Reward'), ('bundle_item', 'Bundle item')], max_length=16)),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1)])),
                ('menu_item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offer_items', to='menu.menuitem')),
                ('offer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offer_items', to='offers.offer')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
    ]
