import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
        ('menu', '0001_initial'),
        ('offers', '0001_initial'),
        ('loyalty', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('customer_email', models.EmailField(max_length=254)),
                ('customer_name', models.CharField(max_length=200)),
                ('customer_phone', models.CharField(blank=True, max_length=20)),
                ('pickup_time', models.DateTimeField(db_index=True)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('confirmed', 'Confirmed'), ('ready', 'Ready for pickup'), ('picked_up', 'Picked up'), ('cancelled', 'Cancelled'), ('refused', 'Refused')], db_index=True, default='pending', max_length=20)),
                ('subtotal', models.PositiveIntegerField(default=0, help_text='Cents, before discounts')),
                ('offers_discount', models.PositiveIntegerField(default=0)),
                ('promo_discount', models.PositiveIntegerField(default=0)),
                ('loyalty_discount', models.PositiveIntegerField(default=0)),
                ('discount_amount', models.PositiveIntegerField(default=0, help_text='Sum of all discounts')),
                ('total_amount', models.PositiveIntegerField(default=0)),
                ('promo_code', models.CharField(blank=True, max_length=50)),
                ('loyalty_points_used', models.PositiveIntegerField(default=0)),
                ('loyalty_credited', models.BooleanField(default=False)),
                ('notes', models.TextField(blank=True, max_length=1000)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('customer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='orders', to='loyalty.customer')),
                ('foodtruck', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='orders', to='core.foodtruck')),
            ],
            options={
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['foodtruck', 'status'], name='order_ft_status_idx'),
                    models.Index(fields=['foodtruck', 'pickup_time'], name='order_ft_pickup_idx'),
                    models.Index(fields=['customer_email'], name='order_email_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OrderItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('quantity', models.PositiveIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(999)])),
                ('unit_price', models.PositiveIntegerField(help_text='Cents at time of order, options included')),
                ('notes', models.CharField(blank=True, max_length=500)),
                ('bundle_instance', models.PositiveIntegerField(blank=True, help_text='Groups the lines of one bundle when several are ordered', null=True)),
                ('bundle_offer', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='order_items', to='offers.offer')),
                ('menu_item', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='order_items', to='menu.menuitem')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='items', to='orders.order')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
        migrations.CreateModel(
            name='OrderItemOption',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('option_name', models.CharField(max_length=100)),
                ('price_modifier', models.IntegerField(default=0)),
                ('option', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='+', to='menu.option')),
                ('order_item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='options', to='orders.orderitem')),
            ],
            options={
                'ordering': ['id'],
            },
        ),
    ]
