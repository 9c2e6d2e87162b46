import django.core.validators
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('payments', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Registration',
            fields=[
                ('id', models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name='ID')),
                ('full_name', models.CharField(max_length=128)),
                ('date_of_birth', models.DateField()),
                ('gender', models.CharField(choices=[('Male', 'Male'), ('Female', 'Female'), ('Other', 'Other')], max_length=8)),
                ('guardian_name', models.CharField(max_length=128)),
                ('nationality', models.CharField(max_length=64)),
                ('religion', models.CharField(max_length=64)),
                ('email', models.EmailField(max_length=254, unique=True)),
                ('mobile_number', models.CharField(max_length=10, validators=[django.core.validators.RegexValidator('^\\d{10}$', 'Mobile number must be exactly 10 digits.')])),
                ('place_of_birth', models.CharField(choices=[('Dharmapuri', 'Dharmapuri'), ('Krishnagiri', 'Krishnagiri'), ('Namakkal', 'Namakkal'), ('Salem', 'Salem')], max_length=16)),
                ('community', models.CharField(choices=[('OC', 'Oc'), ('BC', 'Bc'), ('SC', 'Sc'), ('ST', 'St'), ('MBC', 'Mbc')], max_length=4)),
                ('mother_tongue', models.CharField(max_length=64)),
                ('aadhar_number', models.CharField(max_length=12, validators=[django.core.validators.RegexValidator('^\\d{12}$', 'Aadhaar number must be exactly 12 digits.')])),
                ('degree_name', models.CharField(max_length=128)),
                ('university_name', models.CharField(max_length=128)),
                ('degree_pattern', models.CharField(max_length=64)),
                ('convocation_year', models.CharField(max_length=4, validators=[django.core.validators.RegexValidator('^\\d{4}$')])),
                ('is_registered_graduate', models.BooleanField(default=False)),
                ('occupation', models.CharField(max_length=128)),
                ('address', models.TextField()),
                ('declaration', models.BooleanField(default=False)),
                ('lunch_required', models.CharField(choices=[('VEG', 'Veg'), ('NON-VEG', 'Non Veg')], max_length=8)),
                ('companion_option', models.CharField(choices=[('1 Veg', 'One Veg'), ('1 Non veg', 'One Non Veg'), ('2 Veg', 'Two Veg'), ('2 Non Veg', 'Two Non Veg'), ('1 Veg and 1 Non veg', 'One Each')], max_length=24)),
                ('applicant_photo_path', models.CharField(max_length=255)),
                ('aadhar_copy_path', models.CharField(max_length=255)),
                ('residence_certificate_path', models.CharField(max_length=255)),
                ('degree_certificate_path', models.CharField(max_length=255)),
                ('signature_path', models.CharField(max_length=255)),
                ('other_university_certificate_path', models.CharField(blank=True, default='', max_length=255)),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
                ('order', models.OneToOneField(blank=True, null=True, on_delete=django.db.models.deletion.PROTECT, related_name='registration', to='payments.order', to_field='order_id')),
            ],
            options={
                'ordering': ['-created_at'],
            },
        ),
    ]
