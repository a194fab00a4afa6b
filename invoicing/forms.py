from django import forms

from .models import InvoiceSettings, Payment, Part


class InvoiceSettingsForm(forms.ModelForm):
    class Meta:
        model = InvoiceSettings
        fields = [
            'tax_rate', 'tax_applies_to', 'credit_card_fee_percent',
            'shop_labor_rate', 'road_labor_rate', 'default_parts_markup',
            'shop_supply_fee_percent', 'disposal_fee',
        ]
        widgets = {
            'tax_rate': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0', 'max': '100'}),
            'tax_applies_to': forms.Select(attrs={'class': 'form-select'}),
            'credit_card_fee_percent': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0', 'max': '100'}),
            'shop_labor_rate': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
            'road_labor_rate': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
            'default_parts_markup': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
            'shop_supply_fee_percent': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0', 'max': '100'}),
            'disposal_fee': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
        }

    def clean(self):
        cleaned = super().clean()
        for name in ('tax_rate', 'credit_card_fee_percent', 'shop_supply_fee_percent', 'default_parts_markup',
                     'shop_labor_rate', 'road_labor_rate', 'disposal_fee'):
            value = cleaned.get(name)
            if value is not None and value < 0:
                self.add_error(name, 'Cannot be negative.')
        for name in ('tax_rate', 'credit_card_fee_percent', 'shop_supply_fee_percent'):
            value = cleaned.get(name)
            if value is not None and value > 100:
                self.add_error(name, 'Cannot exceed 100%.')
        return cleaned


class PaymentForm(forms.ModelForm):
    class Meta:
        model = Payment
        fields = ['method', 'amount', 'reference', 'notes']
        widgets = {
            'method': forms.Select(attrs={'class': 'form-select'}),
            'amount': forms.NumberInput(attrs={'class': 'form-control', 'step': '0.01', 'min': '0'}),
            'reference': forms.TextInput(attrs={'class': 'form-control', 'placeholder': 'Check number, transaction ID, etc.'}),
            'notes': forms.Textarea(attrs={'class': 'form-control', 'rows': 3, 'placeholder': 'Payment notes'}),
        }

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        # Defaults to the invoice grand total when left blank
        self.fields['amount'].required = False


class PartForm(forms.ModelForm):
    class Meta:
        model = Part
        fields = ['part_number', 'name', 'cost', 'is_active']

    def clean_part_number(self):
        part_number = self.cleaned_data.get('part_number')
        if part_number:
            part_number = part_number.strip().upper()
        return part_number
