from django.db import migrations, models
import payments.models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentTransaction',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('reference', models.CharField(editable=False, help_text='Globally unique payment reference shared with the provider', max_length=255, unique=True)),
                ('payment_type', models.CharField(choices=[('inspection', 'Inspection'), ('consultation', 'Consultation'), ('order', 'Order')], help_text='Kind of business entity this payment is for', max_length=50)),
                ('entity_id', models.PositiveBigIntegerField(help_text='ID of the inspection, consultation or order being paid for')),
                ('user_id', models.PositiveBigIntegerField(help_text='ID of the paying user')),
                ('amount', models.DecimalField(decimal_places=2, help_text='Amount in the major currency unit (e.g. 5000.00 Naira)', max_digits=12)),
                ('amount_minor', models.PositiveBigIntegerField(help_text='Amount in the smallest currency unit (e.g. kobo, cents)')),
                ('currency', models.CharField(default=payments.models.default_currency, help_text='Currency code (ISO 4217)', max_length=10)),
                ('status', models.CharField(choices=[('pending', 'Pending'), ('success', 'Success'), ('failed', 'Failed')], db_index=True, default='pending', help_text='Current status of the payment', max_length=50)),
                ('provider', models.CharField(help_text='Payment gateway that handled this transaction', max_length=50)),
                ('authorization_url', models.URLField(blank=True, help_text='Checkout URL the payer is redirected to', max_length=500, null=True)),
                ('access_code', models.CharField(blank=True, help_text='Provider specific checkout session code', max_length=255, null=True)),
                ('customer_email', models.EmailField(max_length=255)),
                ('customer_name', models.CharField(blank=True, max_length=255, null=True)),
                ('customer_phone', models.CharField(blank=True, max_length=50, null=True)),
                ('metadata', models.JSONField(blank=True, default=dict, help_text='Caller supplied metadata')),
                ('provider_response', models.JSONField(blank=True, help_text='Raw verification payload returned by the provider', null=True)),
                ('paid_at', models.DateTimeField(blank=True, help_text='When the payment was confirmed', null=True)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'verbose_name': 'Payment Transaction',
                'verbose_name_plural': 'Payment Transactions',
                'db_table': 'payment_transactions',
                'ordering': ['-created_at'],
            },
        ),
        migrations.AddIndex(
            model_name='paymenttransaction',
            index=models.Index(fields=['payment_type', 'entity_id'], name='payment_tx_type_entity_idx'),
        ),
        migrations.AddIndex(
            model_name='paymenttransaction',
            index=models.Index(fields=['user_id'], name='payment_tx_user_idx'),
        ),
    ]
