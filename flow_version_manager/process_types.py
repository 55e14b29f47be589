"""Friendly labels for Flow process types."""

PROCESS_TYPE_LABELS = {
    'AutoLaunchedFlow': 'Autolaunched',
    'Flow': 'Screen Flow',
    'Workflow': 'Workflow',
    'CustomEvent': 'Platform Event',
    'InvocableProcess': 'Invocable Process',
    'LoginFlow': 'Login Flow',
    'ActionPlan': 'Action Plan',
    'JourneyBuilderIntegration': 'Journey Builder',
    'ContactRequestFlow': 'Contact Request',
    'Survey': 'Survey',
    'SurveyEnrich': 'Survey Enrich',
    'Appointments': 'Appointments',
    'FSCLending': 'FSC Lending',
    'DigitalForm': 'Digital Form',
    'FieldServiceMobile': 'Field Service Mobile',
    'OrchestrationFlow': 'Orchestration',
    'RoutingFlow': 'Routing Flow',
    'ServiceCatalogItemFlow': 'Service Catalog',
    'ManagedContentFlow': 'Managed Content',
    'CheckoutFlow': 'Checkout Flow',
    'CartAsyncFlow': 'Cart Async',
    'TransactionSecurityFlow': 'Transaction Security',
    'RecordTriggeredFlow': 'Record-Triggered',
    'ScreenFlow': 'Screen Flow',
    'ScheduleTriggeredFlow': 'Schedule-Triggered',
}


def process_type_label(process_type):
    """Unknown types are shown verbatim"""
    if not process_type:
        return process_type
    return PROCESS_TYPE_LABELS.get(process_type, process_type)
