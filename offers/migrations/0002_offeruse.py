import django.db.models.deletion
import django.utils.timezone
from django.db import migrations, models


class Migration(migrations.Migration):

    dependencies = [
        ('offers', '0001_initial'),
        ('orders', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='OfferUse',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('customer_email', models.EmailField(blank=True, max_length=254)),
                ('discount_amount', models.PositiveIntegerField(default=0, help_text='Cents')),
                ('free_item_name', models.CharField(blank=True, max_length=200)),
                ('items_consumed', models.JSONField(blank=True, default=list)),
                ('used_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('offer', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='uses', to='offers.offer')),
                ('order', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='offer_uses', to='orders.order')),
            ],
            options={
                'ordering': ['used_at', 'id'],
                'indexes': [models.Index(fields=['offer', 'customer_email'], name='offeruse_offer_email_idx')],
            },
        ),
    ]
