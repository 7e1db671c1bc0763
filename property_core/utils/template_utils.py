"""
Email templates.

Templates use ``$name`` placeholders and are rendered with
``string.Template.safe_substitute`` so missing variables stay visible in
the output instead of failing the render.
"""

from string import Template
from typing import Any, Dict, Mapping, Optional, Tuple

from ..exceptions import ErrorCode, ValidationError

# key -> (subject, html body)
DEFAULT_TEMPLATES: Dict[str, Tuple[str, str]] = {
    "welcome-email": (
        "Welcome to $companyName",
        "<p>Hello $recipientName,</p>"
        "<p>An account has been created for you. Your temporary password is "
        "<strong>$temporaryPassword</strong>. You will be asked to change it on first login.</p>"
        '<p><a href="$loginUrl">Sign in</a></p>'
        "<p>Questions? Contact $supportEmail.</p>",
    ),
    "password-reset-email": (
        "Reset your $companyName password",
        "<p>Hello $recipientName,</p>"
        '<p>Use <a href="$resetLink">this link</a> to reset your password. '
        "It expires in $expirationMinutes minutes.</p>"
        "<p>If you did not request this, contact $supportEmail.</p>",
    ),
    "invoice-sent": (
        "New Invoice: $invoiceNumber",
        "<p>Dear $recipientName,</p>"
        "<p>Invoice $invoiceNumber for $totalAmount is due on $dueDate.</p>"
        '<p><a href="$frontendUrl/tenant/invoices/$invoiceId">View invoice</a></p>',
    ),
    "payment-received": (
        "Payment Received - $paymentNumber",
        "<p>Dear $recipientName,</p>"
        "<p>We received your payment $paymentNumber of $amount on $paymentDate "
        "against invoice $invoiceNumber. Remaining balance: $balanceDue.</p>",
    ),
    "quotation-accepted": (
        "Quotation $quotationNumber accepted",
        "<p>Dear $recipientName,</p>"
        "<p>Thank you for accepting quotation $quotationNumber. "
        "Our team will contact you to complete your move-in.</p>",
    ),
    "document-expiry": (
        "Document expiring: $documentTitle",
        "<p>Hello $recipientName,</p>"
        "<p>$documentTitle ($documentNumber) expires on $expiryDate.</p>",
    ),
}


class TemplateRenderer:
    """Renders named templates into a subject and an HTML body."""

    def __init__(self, templates: Optional[Mapping[str, Tuple[str, str]]] = None):
        self.templates = dict(DEFAULT_TEMPLATES)
        if templates:
            self.templates.update(templates)

    def render(self, template_name: str, variables: Dict[str, Any]) -> Tuple[str, str]:
        """
        Returns:
            (subject, html_body)

        Raises:
            ValidationError: unknown template name
        """
        if template_name not in self.templates:
            raise ValidationError(
                f"Unknown email template: {template_name}",
                field="template_name",
                error_code=ErrorCode.INVALID_FORMAT,
                value=template_name,
            )
        values = {k: "" if v is None else v for k, v in variables.items()}
        subject, body = self.templates[template_name]
        return Template(subject).safe_substitute(values), Template(body).safe_substitute(values)
