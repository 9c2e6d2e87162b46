import django.core.validators
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='Order',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(db_index=True, max_length=35, unique=True, validators=[django.core.validators.RegexValidator('^[A-Za-z0-9]{10,35}$')])),
                ('gateway_order_id', models.CharField(blank=True, db_index=True, default='', max_length=64)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('paid', 'Paid'), ('failed', 'Failed')], db_index=True, default='pending', max_length=12)),
                ('amount', models.DecimalField(decimal_places=2, max_digits=12)),
                ('currency', models.CharField(default='356', max_length=3)),
                ('auth_status', models.CharField(blank=True, default='', max_length=8)),
                ('transaction_id', models.CharField(blank=True, default='', max_length=64)),
                ('transaction_date', models.DateTimeField(blank=True, null=True)),
                ('payment_method_type', models.CharField(blank=True, default='', max_length=32)),
                ('bank_reference', models.CharField(blank=True, default='', max_length=64)),
                ('error_type', models.CharField(blank=True, default='', max_length=64)),
                ('error_code', models.CharField(blank=True, default='', max_length=32)),
                ('error_desc', models.CharField(blank=True, default='', max_length=255)),
                ('settled_by', models.CharField(blank=True, choices=[('webhook', 'Webhook'), ('return', 'Browser return'), ('poll', 'Reconciliation poll')], default='', max_length=12)),
                ('settled_at', models.DateTimeField(blank=True, null=True)),
                ('superseded_by', models.CharField(blank=True, default='', max_length=35)),
                ('receipt_number', models.CharField(blank=True, max_length=32, null=True, unique=True)),
                ('receipt_generated_at', models.DateTimeField(blank=True, null=True)),
                ('raw_request_envelope', models.TextField(blank=True, default='')),
                ('raw_order_response_envelope', models.TextField(blank=True, default='')),
                ('raw_response_envelope', models.TextField(blank=True, default='')),
                ('last_event_at', models.DateTimeField(blank=True, null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True, db_index=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
        ),
        migrations.CreateModel(
            name='PaymentNotification',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('order_id', models.CharField(blank=True, db_index=True, default='', max_length=35)),
                ('source', models.CharField(choices=[('webhook', 'Webhook'), ('return', 'Browser return'), ('poll', 'Reconciliation poll')], max_length=12)),
                ('raw_envelope', models.TextField(blank=True, default='')),
                ('payload', models.JSONField(blank=True, null=True)),
                ('outcome', models.CharField(choices=[('applied', 'Applied'), ('replayed', 'Replayed (no-op)'), ('conflict', 'Conflicting terminal status'), ('ignored', 'Ignored (non-terminal or display only)'), ('rejected', 'Rejected envelope'), ('unknown_order', 'Unknown order')], max_length=16)),
                ('detail', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
            ],
            options={
                'ordering': ('-created_at',),
            },
        ),
    ]
