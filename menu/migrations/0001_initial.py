import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('core', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Category',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(help_text='Category name (HTML tags will be stripped)', max_length=100)),
                ('display_order', models.PositiveIntegerField(default=0, help_text='Display order (0-9999)', validators=[django.core.validators.MaxValueValidator(9999)])),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('foodtruck', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='categories', to='core.foodtruck')),
            ],
            options={
                'verbose_name_plural': 'Categories',
                'ordering': ['display_order', 'name'],
                'indexes': [models.Index(fields=['foodtruck', 'display_order'], name='menu_cat_ft_order_idx')],
                'unique_together': {('foodtruck', 'name')},
            },
        ),
        migrations.CreateModel(
            name='MenuItem',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=200)),
                ('description', models.TextField(blank=True)),
                ('price', models.PositiveIntegerField(help_text='Base price in cents')),
                ('is_available', models.BooleanField(default=True, help_text='Temporarily out of stock when unchecked')),
                ('is_archived', models.BooleanField(default=False, help_text='Archived items are hidden but kept for past orders')),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('category', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='items', to='menu.category')),
                ('foodtruck', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='menu_items', to='core.foodtruck')),
            ],
            options={
                'ordering': ['display_order', 'name'],
                'indexes': [
                    models.Index(fields=['foodtruck', 'is_available', 'is_archived'], name='menu_item_ft_avail_idx'),
                    models.Index(fields=['category', 'display_order'], name='menu_item_cat_order_idx'),
                ],
            },
        ),
        migrations.CreateModel(
            name='OptionGroup',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('is_required', models.BooleanField(default=False)),
                ('is_multiple', models.BooleanField(default=False, help_text='Allow selecting several options from this group')),
                ('is_size_group', models.BooleanField(default=False, help_text='Options of a size group carry the full item price for that size')),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('menu_item', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='option_groups', to='menu.menuitem')),
            ],
            options={
                'ordering': ['display_order', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Option',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('name', models.CharField(max_length=100)),
                ('price_modifier', models.IntegerField(default=0, help_text='Cents added to the item price; for size options, the full price')),
                ('is_available', models.BooleanField(default=True)),
                ('display_order', models.PositiveIntegerField(default=0)),
                ('option_group', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='options', to='menu.optiongroup')),
            ],
            options={
                'ordering': ['display_order', 'id'],
            },
        ),
    ]
