from django.core.validators import RegexValidator
from django.db import models

mobile_validator = RegexValidator(r"^\d{10}$", "Mobile number must be exactly 10 digits.")
aadhaar_validator = RegexValidator(r"^\d{12}$", "Aadhaar number must be exactly 12 digits.")


class Registration(models.Model):
    class Gender(models.TextChoices):
        MALE = "Male"
        FEMALE = "Female"
        OTHER = "Other"

    class PlaceOfBirth(models.TextChoices):
        DHARMAPURI = "Dharmapuri"
        KRISHNAGIRI = "Krishnagiri"
        NAMAKKAL = "Namakkal"
        SALEM = "Salem"

    class Community(models.TextChoices):
        OC = "OC"
        BC = "BC"
        SC = "SC"
        ST = "ST"
        MBC = "MBC"

    class Lunch(models.TextChoices):
        VEG = "VEG"
        NON_VEG = "NON-VEG"

    class Companion(models.TextChoices):
        ONE_VEG = "1 Veg"
        ONE_NON_VEG = "1 Non veg"
        TWO_VEG = "2 Veg"
        TWO_NON_VEG = "2 Non Veg"
        ONE_EACH = "1 Veg and 1 Non veg"

    full_name = models.CharField(max_length=128)
    date_of_birth = models.DateField()
    gender = models.CharField(max_length=8, choices=Gender.choices)
    guardian_name = models.CharField(max_length=128)
    nationality = models.CharField(max_length=64)
    religion = models.CharField(max_length=64)
    email = models.EmailField(unique=True)
    mobile_number = models.CharField(max_length=10, validators=[mobile_validator])
    place_of_birth = models.CharField(max_length=16, choices=PlaceOfBirth.choices)
    community = models.CharField(max_length=4, choices=Community.choices)
    mother_tongue = models.CharField(max_length=64)
    aadhar_number = models.CharField(max_length=12, validators=[aadhaar_validator])

    degree_name = models.CharField(max_length=128)
    university_name = models.CharField(max_length=128)
    degree_pattern = models.CharField(max_length=64)
    convocation_year = models.CharField(max_length=4, validators=[RegexValidator(r"^\d{4}$")])
    is_registered_graduate = models.BooleanField(default=False)
    occupation = models.CharField(max_length=128)
    address = models.TextField()
    declaration = models.BooleanField(default=False)
    lunch_required = models.CharField(max_length=8, choices=Lunch.choices)
    companion_option = models.CharField(max_length=24, choices=Companion.choices)

    # uploaded documents, stored through default_storage
    applicant_photo_path = models.CharField(max_length=255)
    aadhar_copy_path = models.CharField(max_length=255)
    residence_certificate_path = models.CharField(max_length=255)
    degree_certificate_path = models.CharField(max_length=255)
    signature_path = models.CharField(max_length=255)
    other_university_certificate_path = models.CharField(max_length=255, blank=True, default="")

    order = models.OneToOneField(
        "payments.Order", to_field="order_id", on_delete=models.PROTECT,
        null=True, blank=True, related_name="registration",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    @property
    def payment_status(self) -> str:
        return self.order.status if self.order_id else ""

    def __str__(self):
        return f"{self.full_name} <{self.email}>"
