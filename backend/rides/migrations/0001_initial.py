import django.core.validators
import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name='Ride',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('accepted', 'Accepted'), ('in-progress', 'In Progress'), ('completed', 'Completed'), ('cancelled', 'Cancelled')], default='pending', max_length=20)),
                ('pickup_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('pickup_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('pickup_address', models.CharField(max_length=255)),
                ('pickup_landmark', models.CharField(blank=True, default='', max_length=255)),
                ('destination_latitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('destination_longitude', models.DecimalField(decimal_places=6, max_digits=9)),
                ('destination_address', models.CharField(max_length=255)),
                ('destination_landmark', models.CharField(blank=True, default='', max_length=255)),
                ('route_distance_km', models.FloatField()),
                ('route_duration_minutes', models.PositiveIntegerField()),
                ('route_polyline', models.TextField(blank=True, default='')),
                ('token_amount', models.PositiveIntegerField(validators=[django.core.validators.MinValueValidator(1)])),
                ('token_category', models.CharField(choices=[('food', 'Food'), ('travel', 'Travel'), ('clothing', 'Clothing'), ('coupons', 'Coupons')], default='food', max_length=10)),
                ('tokens_distributed', models.BooleanField(default=False)),
                ('scheduled_time', models.DateTimeField(default=django.utils.timezone.now)),
                ('requested_at', models.DateTimeField(default=django.utils.timezone.now)),
                ('accepted_at', models.DateTimeField(blank=True, null=True)),
                ('started_at', models.DateTimeField(blank=True, null=True)),
                ('completed_at', models.DateTimeField(blank=True, null=True)),
                ('cancelled_at', models.DateTimeField(blank=True, null=True)),
                ('rating_by_driver', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('feedback_by_driver', models.TextField(blank=True, default='', max_length=500)),
                ('rating_by_rider', models.PositiveSmallIntegerField(blank=True, null=True, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(5)])),
                ('feedback_by_rider', models.TextField(blank=True, default='', max_length=500)),
                ('notes', models.CharField(blank=True, default='', max_length=200)),
                ('max_passengers', models.PositiveSmallIntegerField(default=1, validators=[django.core.validators.MinValueValidator(1), django.core.validators.MaxValueValidator(4)])),
                ('emergency_contact_name', models.CharField(blank=True, default='', max_length=100)),
                ('emergency_contact_phone', models.CharField(blank=True, default='', max_length=20)),
                ('cancellation_reason', models.TextField(blank=True, default='')),
                ('version', models.PositiveIntegerField(default=0)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('cancelled_by', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.SET_NULL, related_name='cancelled_rides_set', to=settings.AUTH_USER_MODEL)),
                ('driver', models.ForeignKey(on_delete=django.db.models.deletion.PROTECT, related_name='rides_as_driver', to=settings.AUTH_USER_MODEL)),
                ('rider', models.ForeignKey(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='rides_as_rider', to=settings.AUTH_USER_MODEL)),
            ],
            options={
                'db_table': 'rides',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['driver', 'status'], name='rides_driver_status_idx'),
                    models.Index(fields=['rider', 'status'], name='rides_rider_status_idx'),
                    models.Index(fields=['status', 'scheduled_time'], name='rides_status_sched_idx'),
                    models.Index(fields=['pickup_latitude', 'pickup_longitude'], name='rides_pickup_idx'),
                ],
            },
        ),
    ]
