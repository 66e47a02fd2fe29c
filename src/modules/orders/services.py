"""Order service layer (Use Cases).

Orchestrates order creation, the customer's receipt upload and the
admin's status management.  Authorization runs first and outside any
transaction (so security alerts survive a rollback); status writes are
delegated to ``OrderLifecycle``, the unit-of-work boundary.

Business rules enforced:
- Only customers create orders, at most ``ORDER_RATE_LIMIT`` per window.
- The rate is snapshotted once; ``amount_target`` is computed once.
- Only the owning customer uploads the CLP receipt
  (``created -> receipt_uploaded``); admins drive every other edge.
- Resubmission (``rejected -> created``) clears the CLP receipt and keeps
  the beneficiary and financial snapshot.
- The VES receipt is attached once, in ``processing`` or ``paid_out``.
- The payout reference is set once, on ``processing -> paid_out``.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Mapping, Optional, Union

import structlog
from django.db import DatabaseError, IntegrityError, transaction
from django.utils import timezone
from pydantic import BaseModel

from modules.core.audit import AuditLogger, audit_logger
from modules.core.authorization import Actor, AuthorizationGate, authorization_gate
from modules.core.exceptions import (
    InternalError,
    InvalidArgument,
    ResourceExhausted,
    ServiceError,
)
from modules.core.ratelimit import default_rate_limiter, order_rate_limiter
from modules.core.validation import parse_dto
from modules.orders.constants import (
    CUSTOMER_TRANSITION,
    DESTINATION_RECEIPT_STATUSES,
    OrderStatus,
)
from modules.orders.dtos import (
    AttachDestinationReceiptDTO,
    ConfirmPayoutDTO,
    CreateOrderDTO,
    MutationKind,
    TransitionOrderDTO,
    UploadSourceReceiptDTO,
)
from modules.orders.events import OrderCreated
from modules.orders.exceptions import (
    DestinationReceiptNotAllowed,
    OrderNotFound,
    PayoutAlreadyConfirmed,
    ReceiptAlreadyAttached,
)
from modules.orders.lifecycle import OrderLifecycle
from modules.orders.models import Order
from modules.rates.exceptions import RateNotConfigured

if TYPE_CHECKING:
    from django.db.models import QuerySet

    from modules.accounts.services import SavedBankAccountService
    from modules.core.ratelimit import IRateLimiter
    from modules.orders.models import OrderEvent
    from modules.orders.repositories.interfaces import IOrderRepository
    from modules.rates.repositories.interfaces import IExchangeRateRepository

logger = structlog.get_logger(__name__)

RESOURCE = "orders"
INITIAL_EVENT_NOTE = "Order created"

Payload = Union[BaseModel, Mapping[str, Any]]
Mutation = Callable[[Optional[Actor], str, Payload], Order]


@dataclass(frozen=True)
class CreateOrderResult:
    order: Order
    created: bool

    @property
    def order_id(self) -> str:
        return str(self.order.id)

    @property
    def order_number(self) -> str:
        return self.order.order_number

    @property
    def amount_target(self) -> Decimal:
        return self.order.amount_target


class OrderService:
    """Application service for Order use-cases.

    Receives repositories, limiters, gate and auditor via constructor
    injection (DIP).
    """

    def __init__(
        self,
        order_repository: IOrderRepository,
        rate_repository: IExchangeRateRepository,
        saved_accounts: SavedBankAccountService,
        order_limiter: Optional[IRateLimiter] = None,
        mutation_limiter: Optional[IRateLimiter] = None,
        gate: Optional[AuthorizationGate] = None,
        auditor: Optional[AuditLogger] = None,
        lifecycle: Optional[OrderLifecycle] = None,
    ) -> None:
        self._order_repo = order_repository
        self._rate_repo = rate_repository
        self._saved_accounts = saved_accounts
        self._order_limiter = order_limiter or order_rate_limiter()
        self._mutation_limiter = mutation_limiter or default_rate_limiter()
        self._gate = gate or authorization_gate
        self._audit = auditor or audit_logger
        self._lifecycle = lifecycle or OrderLifecycle(order_repository)
        self._mutations: Dict[MutationKind, Mutation] = {
            MutationKind.UPLOAD_SOURCE_RECEIPT: self.upload_source_receipt,
            MutationKind.TRANSITION_STATUS: self.transition_status,
            MutationKind.ATTACH_DESTINATION_RECEIPT: self.attach_destination_receipt,
            MutationKind.CONFIRM_PAYOUT: self.confirm_payout,
        }

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    def create_order(self, actor: Optional[Actor], dto: Payload) -> CreateOrderResult:
        """Create a new order in ``created`` with its initial event.

        Steps:
        1. Caller must be a customer; order limiter.
        2. Validate amount and beneficiary (or resolve the saved account).
        3. Idempotency: a known key returns the existing order.
        4. Snapshot the current rate; compute ``amount_target`` once.
        5. Persist order + ``None -> created`` event atomically.

        Raises:
            PermissionDeniedError: caller is not a customer.
            ResourceExhausted: order limiter exceeded.
            InvalidArgument: amount out of range, missing beneficiary field.
            SavedAccountNotFound: ``saved_account_id`` is not the caller's.
            RateNotConfigured: no exchange rate yet.
        """
        actor = self._gate.require_customer(actor, "createOrder")
        log = logger.bind(customer_id=actor.id)

        if not self._order_limiter.check_and_increment(actor.id):
            self._audit.log_failure(actor.id, "createOrder", RESOURCE, "Rate limit exceeded")
            raise ResourceExhausted("Too many orders. Please wait a minute.")

        dto = parse_dto(CreateOrderDTO, dto)
        log.info("order.creation_started", amount_source=dto.amount_source)

        saved_account = None
        if dto.saved_account_id is not None:
            saved_account = self._saved_accounts.get_owned(actor.id, str(dto.saved_account_id))
            beneficiary = saved_account.beneficiary_as_dict()
        else:
            beneficiary = dto.beneficiary.as_model_fields()

        if dto.idempotency_key:
            existing = self._order_repo.get_by_idempotency_key(actor.id, dto.idempotency_key)
            if existing:
                log.info("order.idempotency_hit", order_id=str(existing.id))
                return CreateOrderResult(order=existing, created=False)

        rate = self._rate_repo.get_current()
        if rate is None:
            self._audit.log_failure(
                actor.id, "createOrder", RESOURCE, RateNotConfigured.default_message
            )
            raise RateNotConfigured()

        order = Order(
            customer_id=actor.id,
            customer_name=actor.display_name,
            customer_email=actor.email,
            amount_source=dto.amount_source,
            rate_snapshot=rate.clp_to_ves,
            amount_target=Order.compute_amount_target(dto.amount_source, rate.clp_to_ves),
            idempotency_key=dto.idempotency_key,
            **beneficiary,
        )
        try:
            with transaction.atomic():
                order.assign_order_number()
                order.add_domain_event(
                    OrderCreated(
                        aggregate_id=order.id,
                        customer_id=actor.id,
                        order_number=order.order_number,
                    )
                )
                self._order_repo.save(order)
                self._order_repo.add_event(
                    order, None, OrderStatus.CREATED, actor, INITIAL_EVENT_NOTE
                )
        except IntegrityError as exc:
            if dto.idempotency_key:
                existing = self._order_repo.get_by_idempotency_key(
                    actor.id, dto.idempotency_key
                )
                if existing:
                    log.info("order.idempotency_race", order_id=str(existing.id))
                    return CreateOrderResult(order=existing, created=False)
            log.exception("order.creation_failed")
            raise InternalError("Failed to create order.") from exc
        except DatabaseError as exc:
            log.exception("order.creation_failed")
            raise InternalError("Failed to create order.") from exc

        if saved_account is not None:
            self._saved_accounts.mark_used(saved_account)

        log.info(
            "order.created",
            order_id=str(order.id),
            order_number=order.order_number,
            rate_snapshot=str(order.rate_snapshot),
        )
        return CreateOrderResult(order=order, created=True)

    def apply_mutation(
        self,
        actor: Optional[Actor],
        order_id: str,
        kind: Union[MutationKind, str],
        payload: Payload,
    ) -> Order:
        """Dispatch one of the order mutations by kind."""
        try:
            kind = MutationKind(kind)
        except ValueError as exc:
            raise InvalidArgument(f"Unknown mutation: {kind}", field="kind") from exc
        return self._mutations[kind](actor, order_id, payload)

    def upload_source_receipt(
        self, actor: Optional[Actor], order_id: str, dto: Payload
    ) -> Order:
        """Owner attaches the CLP receipt: ``created -> receipt_uploaded``."""
        action = "uploadSourceReceipt"
        actor = self._gate.require_authenticated(actor, action)
        order = self._get_existing(order_id)
        self._gate.require_owner(actor, action, order.customer_id)
        self._check_mutation_limit(actor, action, order_id)
        dto = parse_dto(UploadSourceReceiptDTO, dto)

        return self._transition(
            actor,
            action,
            order_id,
            OrderStatus.RECEIPT_UPLOADED,
            note=dto.note,
            source_receipt_ref=dto.receipt_ref,
        )

    def transition_status(
        self, actor: Optional[Actor], order_id: str, dto: Payload
    ) -> Order:
        """Admin status change along any allowed edge but the customer's."""
        action = "transitionOrderStatus"
        actor = self._gate.require_admin(actor, action)
        dto = parse_dto(TransitionOrderDTO, dto)

        if dto.new_status == CUSTOMER_TRANSITION[1]:
            self._gate.deny(
                actor,
                action,
                "Only the owning customer can move an order to receipt_uploaded.",
            )
        self._check_mutation_limit(actor, action, order_id)

        changes: Dict[str, Any] = {}
        if dto.new_status == OrderStatus.CREATED:
            # Resubmission: a new CLP receipt is required.
            changes["source_receipt_ref"] = ""

        return self._transition(
            actor, action, order_id, dto.new_status, note=dto.note, **changes
        )

    def attach_destination_receipt(
        self, actor: Optional[Actor], order_id: str, dto: Payload
    ) -> Order:
        """Admin attaches the VES receipt (``processing`` / ``paid_out``, once)."""
        action = "attachDestinationReceipt"
        actor = self._gate.require_admin(actor, action)
        dto = parse_dto(AttachDestinationReceiptDTO, dto)
        self._check_mutation_limit(actor, action, order_id)

        def precondition(order: Order) -> None:
            if order.status not in DESTINATION_RECEIPT_STATUSES:
                raise DestinationReceiptNotAllowed(
                    f"Cannot attach the VES receipt while the order is {order.status}."
                )
            if order.destination_receipt_ref:
                raise ReceiptAlreadyAttached("The VES receipt is already attached.")

        try:
            order = self._lifecycle.amend(
                order_id,
                actor,
                precondition=precondition,
                destination_receipt_ref=dto.receipt_ref,
            )
        except ServiceError as exc:
            self._audit.log_failure(actor.id, action, RESOURCE, exc.message, str(order_id))
            raise

        self._audit.log_success(
            actor.id,
            action,
            RESOURCE,
            str(order.id),
            changes={"destination_receipt_ref": dto.receipt_ref},
        )
        return order

    def confirm_payout(
        self, actor: Optional[Actor], order_id: str, dto: Payload
    ) -> Order:
        """Admin confirms the VES transfer: ``processing -> paid_out``."""
        action = "confirmPayout"
        actor = self._gate.require_admin(actor, action)
        dto = parse_dto(ConfirmPayoutDTO, dto)
        self._check_mutation_limit(actor, action, order_id)

        changes: Dict[str, Any] = {
            "transfer_reference": dto.transfer_reference,
            "transferred_at": timezone.now(),
        }
        if dto.destination_receipt_ref:
            changes["destination_receipt_ref"] = dto.destination_receipt_ref

        def precondition(order: Order) -> None:
            if order.transfer_reference:
                raise PayoutAlreadyConfirmed("The payout is already confirmed.")
            if dto.destination_receipt_ref and order.destination_receipt_ref:
                raise ReceiptAlreadyAttached("The VES receipt is already attached.")

        return self._transition(
            actor,
            action,
            order_id,
            OrderStatus.PAID_OUT,
            note=dto.note,
            precondition=precondition,
            **changes,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_order(self, actor: Optional[Actor], order_id: str) -> Order:
        """Owner or admin; anyone else gets ``OrderNotFound``."""
        actor = self._gate.require_authenticated(actor, "getOrder")
        order = self._order_repo.get_by_id(str(order_id))
        if order is None or not (actor.is_admin or order.customer_id == actor.id):
            raise OrderNotFound()
        return order

    def visible_orders(self, actor: Optional[Actor]) -> QuerySet[Order]:
        """Admin: every order.  Customer: their own."""
        actor = self._gate.require_authenticated(actor, "listOrders")
        return self._order_repo.queryset_for(None if actor.is_admin else actor.id)

    def list_orders(
        self, actor: Optional[Actor], status: Optional[str] = None
    ) -> List[Order]:
        queryset = self.visible_orders(actor)
        if status:
            queryset = queryset.filter(status=status)
        return list(queryset)

    def list_events(self, actor: Optional[Actor], order_id: str) -> List[OrderEvent]:
        """Event log of a visible order, oldest first."""
        order = self.get_order(actor, order_id)
        return self._order_repo.list_events(str(order.id))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _get_existing(self, order_id: str) -> Order:
        order = self._order_repo.get_by_id(str(order_id))
        if order is None:
            raise OrderNotFound()
        return order

    def _check_mutation_limit(self, actor: Actor, action: str, order_id: str) -> None:
        if not self._mutation_limiter.check_and_increment(actor.id):
            self._audit.log_failure(
                actor.id, action, RESOURCE, "Rate limit exceeded", str(order_id)
            )
            raise ResourceExhausted()

    def _transition(
        self,
        actor: Actor,
        action: str,
        order_id: str,
        new_status: str,
        note: str = "",
        precondition: Optional[Callable[[Order], None]] = None,
        **changes: Any,
    ) -> Order:
        """Run the orchestrator and audit the outcome."""
        try:
            result = self._lifecycle.transition(
                order_id,
                new_status,
                actor,
                note=note,
                precondition=precondition,
                **changes,
            )
        except ServiceError as exc:
            self._audit.log_failure(actor.id, action, RESOURCE, exc.message, str(order_id))
            raise

        self._audit.log_success(
            actor.id,
            action,
            RESOURCE,
            str(result.order.id),
            changes={"from": result.from_status, "to": result.to_status, "note": note},
        )
        return result.order
