from django.urls import path

from . import views_invoice

app_name = "invoicing"

urlpatterns = [
    # Invoices
    path("api/invoices/", views_invoice.api_invoice_list, name="api_invoice_list"),
    path("api/invoices/pending/", views_invoice.api_pending_payments, name="api_pending_payments"),
    path("api/invoices/totals/", views_invoice.api_invoice_totals, name="api_invoice_totals"),
    path("api/invoices/save/", views_invoice.api_invoice_save, name="api_invoice_save"),
    path("api/invoices/<int:pk>/", views_invoice.api_invoice_detail, name="api_invoice_detail"),
    path("api/invoices/<int:pk>/mark-paid/", views_invoice.api_invoice_mark_paid, name="api_invoice_mark_paid"),
    path("api/invoices/<int:pk>/send/", views_invoice.api_invoice_send, name="api_invoice_send"),
    path("invoices/<int:pk>/print/", views_invoice.invoice_print, name="invoice_print"),

    # Catalog and settings
    path("api/parts/lookup/", views_invoice.api_parts_lookup, name="api_parts_lookup"),
    path("api/invoice-settings/", views_invoice.api_invoice_settings, name="api_invoice_settings"),
]
