import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


CATEGORY_CHOICES = [('food', 'Food'), ('travel', 'Travel'), ('clothing', 'Clothing'), ('coupons', 'Coupons')]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ('rides', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Reward',
            fields=[
                ('id', models.SlugField(max_length=64, primary_key=True, serialize=False)),
                ('title', models.CharField(max_length=120)),
                ('description', models.CharField(blank=True, default='', max_length=255)),
                ('category', models.CharField(choices=CATEGORY_CHOICES, max_length=10)),
                ('cost', models.PositiveIntegerField()),
                ('brand', models.CharField(blank=True, default='', max_length=80)),
                ('original_price', models.CharField(blank=True, default='', max_length=40)),
                ('discount', models.CharField(blank=True, default='', max_length=40)),
                ('image', models.URLField(blank=True, default='', max_length=500)),
                ('available', models.BooleanField(default=True)),
                ('featured', models.BooleanField(default=False)),
                ('terms', models.JSONField(blank=True, default=list)),
            ],
            options={
                'db_table': 'rewards',
                'ordering': ['cost', 'id'],
            },
        ),
        migrations.CreateModel(
            name='Redemption',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('voucher_code', models.CharField(max_length=32, unique=True)),
                ('cost', models.PositiveIntegerField()),
                ('category', models.CharField(choices=CATEGORY_CHOICES, max_length=10)),
                ('status', models.CharField(choices=[('active', 'Active'), ('used', 'Used'), ('expired', 'Expired')], default='active', max_length=10)),
                ('redeemed_at', models.DateTimeField(auto_now_add=True)),
                ('expires_at', models.DateTimeField()),
                ('reward', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='redemptions', to='wallet.reward')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='redemptions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'redemptions',
                'ordering': ['-redeemed_at', '-id'],
            },
        ),
        migrations.CreateModel(
            name='TokenTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('kind', models.CharField(choices=[('ride_reward', 'Ride reward'), ('redemption', 'Reward redemption'), ('transfer_out', 'Transfer out'), ('transfer_in', 'Transfer in'), ('adjustment', 'Adjustment')], max_length=20)),
                ('category', models.CharField(choices=CATEGORY_CHOICES, max_length=10)),
                ('amount', models.IntegerField()),
                ('description', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('redemption', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='token_transactions', to='wallet.redemption')),
                ('ride', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='token_transactions', to='rides.ride')),
                ('user', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='token_transactions', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'token_transactions',
                'ordering': ['-created_at', '-id'],
                'constraints': [
                    models.UniqueConstraint(condition=models.Q(('kind', 'ride_reward')), fields=('ride', 'user'), name='unique_ride_reward_per_user'),
                ],
            },
        ),
    ]
