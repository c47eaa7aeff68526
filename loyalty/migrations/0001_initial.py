import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Customer',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('email', models.EmailField(help_text='Stored lower-cased', max_length=254)),
                ('name', models.CharField(blank=True, max_length=200)),
                ('phone', models.CharField(blank=True, max_length=20)),
                ('loyalty_points', models.IntegerField(default=0)),
                ('loyalty_opt_in', models.BooleanField(default=False)),
                ('total_orders', models.PositiveIntegerField(default=0)),
                ('total_spent', models.PositiveIntegerField(default=0, help_text='Cents')),
                ('last_order_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('foodtruck', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='customers', to='core.foodtruck')),
            ],
            options={
                'ordering': ['-last_order_at', 'email'],
                'constraints': [models.UniqueConstraint(fields=('foodtruck', 'email'), name='customer_ft_email_uniq')],
            },
        ),
    ]
