"""Checkout step commands — one command per customer edit or step move."""

from protean import handle
from protean.fields import Boolean, Identifier, String
from protean.utils.globals import current_domain

from checkout.domain import checkout
from checkout.session.session import CheckoutSession


@checkout.command(part_of="CheckoutSession")
class SelectDeliveryOption:
    session_id = Identifier(required=True)
    delivery_option = String(required=True, max_length=20)


@checkout.command(part_of="CheckoutSession")
class UpdateShippingInfo:
    """Partial update: omitted fields keep their current value."""

    session_id = Identifier(required=True)
    first_name = String(max_length=100)
    last_name = String(max_length=100)
    email = String(max_length=254)
    phone = String(max_length=30)
    address = String(max_length=255)
    city = String(max_length=100)
    postal_code = String(max_length=20)
    country = String(max_length=100)


@checkout.command(part_of="CheckoutSession")
class SelectPaymentMethod:
    session_id = Identifier(required=True)
    payment_method = String(required=True, max_length=20)
    payer_identifier = String(max_length=30)


@checkout.command(part_of="CheckoutSession")
class RequestWalletAmount:
    session_id = Identifier(required=True)
    amount = String(max_length=50)  # Raw customer input


@checkout.command(part_of="CheckoutSession")
class AcceptTerms:
    session_id = Identifier(required=True)
    accepted = Boolean(default=True)


@checkout.command(part_of="CheckoutSession")
class AdvanceStep:
    session_id = Identifier(required=True)


@checkout.command(part_of="CheckoutSession")
class GoBack:
    session_id = Identifier(required=True)


@checkout.command(part_of="CheckoutSession")
class AbandonCheckout:
    session_id = Identifier(required=True)


_SHIPPING_COMMAND_FIELDS = ("first_name", "last_name", "email", "phone", "address", "city", "postal_code", "country")


@checkout.command_handler(part_of=CheckoutSession)
class CheckoutNavigationHandler:
    @handle(SelectDeliveryOption)
    def select_delivery_option(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.select_delivery_option(command.delivery_option)
        repo.add(session)

    @handle(UpdateShippingInfo)
    def update_shipping_info(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.update_shipping_info(
            **{name: getattr(command, name) for name in _SHIPPING_COMMAND_FIELDS if getattr(command, name) is not None}
        )
        repo.add(session)

    @handle(SelectPaymentMethod)
    def select_payment_method(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.select_payment_method(command.payment_method, command.payer_identifier)
        repo.add(session)

    @handle(RequestWalletAmount)
    def request_wallet_amount(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.request_wallet_amount(command.amount)
        repo.add(session)

    @handle(AcceptTerms)
    def accept_terms(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.accept_terms(command.accepted)
        repo.add(session)

    @handle(AdvanceStep)
    def advance_step(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.advance()
        repo.add(session)
        return session.step

    @handle(GoBack)
    def go_back(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        redirect = session.go_back()
        repo.add(session)
        return redirect

    @handle(AbandonCheckout)
    def abandon_checkout(self, command):
        repo = current_domain.repository_for(CheckoutSession)
        session = repo.get(command.session_id)
        session.abandon()
        repo.add(session)
