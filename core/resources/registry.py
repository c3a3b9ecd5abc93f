"""
Resource kinds known to the back office.

Maps each resource_type to its model, the canonical order its fields are
listed in when a diff is shown, and the UI path whose cached views go stale
when a record of that type changes.
"""
from models import Flight, MoneyTransfer, Parcel, Translation, OtherService

RESOURCE_MODELS = {
    'flights': Flight,
    'money_transfers': MoneyTransfer,
    'parcels': Parcel,
    'translations': Translation,
    'other_services': OtherService,
}

RESOURCE_TYPES = frozenset(RESOURCE_MODELS)

FIELD_ORDER = {
    'flights': [
        'status', 'cost', 'sold_price', 'itinerary', 'travel_date',
        'return_date', 'pnr', 'on_account', 'balance', 'payment_details',
    ],
    'money_transfers': [
        'status', 'amount_sent', 'amount_received', 'exchange_rate',
        'beneficiary_name', 'transfer_code', 'payment_details',
    ],
    'parcels': [
        'status', 'recipient_name', 'recipient_phone', 'recipient_address',
        'origin_address', 'destination_address', 'package_type',
        'package_weight', 'package_description', 'shipping_cost',
        'payment_details',
    ],
    'translations': [
        'status', 'document_type', 'source_language', 'target_language',
        'total_amount', 'on_account', 'balance', 'payment_details',
    ],
    'other_services': [
        'status', 'service_description', 'total_amount', 'on_account',
        'balance', 'payment_details', 'expense_details',
    ],
}

UI_PATHS = {
    'flights': '/chimi-vuelos',
    'money_transfers': '/chimi-giros',
    'parcels': '/chimi-encomiendas',
    'translations': '/chimi-traducciones',
    'other_services': '/chimi-otros-servicios',
}


def get_model(resource_type):
    """Return the model class for resource_type, or None if unknown."""
    return RESOURCE_MODELS.get(resource_type)


def get_field_order(resource_type):
    return list(FIELD_ORDER.get(resource_type, []))


def get_ui_path(resource_type):
    return UI_PATHS.get(resource_type, '/dashboard')
