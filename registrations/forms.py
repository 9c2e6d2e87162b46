from django import forms
from django.core.exceptions import ValidationError

from .models import Registration

MAX_UPLOAD_BYTES = 5 * 1024 * 1024

# form field -> Registration attribute holding the stored path
DOCUMENT_FIELDS = {
    "applicant_photo": "applicant_photo_path",
    "aadhar_copy": "aadhar_copy_path",
    "residence_certificate": "residence_certificate_path",
    "degree_certificate": "degree_certificate_path",
    "signature": "signature_path",
    "other_university_certificate": "other_university_certificate_path",
}


class RegistrationForm(forms.ModelForm):
    applicant_photo = forms.FileField()
    aadhar_copy = forms.FileField()
    residence_certificate = forms.FileField()
    degree_certificate = forms.FileField()
    signature = forms.FileField()
    other_university_certificate = forms.FileField(required=False)

    class Meta:
        model = Registration
        exclude = ["order", *DOCUMENT_FIELDS.values()]

    def clean_full_name(self):
        return " ".join(self.cleaned_data["full_name"].split()).upper()

    def clean_email(self):
        email = self.cleaned_data["email"].strip().lower()
        taken = Registration.objects.filter(email__iexact=email)
        if self.instance.pk:
            taken = taken.exclude(pk=self.instance.pk)
        if taken.exists():
            raise ValidationError("Email is already registered.", code="duplicate")
        return email

    def clean_declaration(self):
        if not self.cleaned_data.get("declaration"):
            raise ValidationError("The declaration must be accepted.", code="required")
        return True

    def clean(self):
        cleaned = super().clean()
        for name in DOCUMENT_FIELDS:
            upload = cleaned.get(name)
            if upload and upload.size > MAX_UPLOAD_BYTES:
                self.add_error(name, "File too large (max 5 MB).")
        return cleaned

    def uploads(self):
        """(attribute, file) pairs for the documents that were actually sent."""
        return [
            (attr, self.cleaned_data[name])
            for name, attr in DOCUMENT_FIELDS.items()
            if self.cleaned_data.get(name)
        ]
