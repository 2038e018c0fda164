import logging
import threading
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional

from orcamais.categorization import CategorizationEngine
from orcamais.categorization.categories import OTHER
from orcamais.domain.enums import CalculationType, DataEvent, Theme, TransactionType
from orcamais.domain.errors import NotFoundError, OrcaMaisError, ValidationError
from orcamais.domain.models import (
    Dream,
    InvestmentData,
    Transaction,
    UserDocument,
    UserProfile,
    now_iso,
    parse_day,
    to_decimal,
)
from orcamais.domain.periods import current_period, parse_period
from orcamais.identity.base import (
    AuthError,
    IdentityProvider,
    NotAuthenticatedError,
    UserRef,
)
from orcamais.repositories.base import DocumentStore, PersistenceError
from orcamais.services.dreams import plan_dream
from orcamais.services.events import EventBus, EventCallback
from orcamais.services.models import (
    Alert,
    CategoryBudgetStatus,
    FinancialSummary,
    OperationResult,
    PeriodComparison,
)
from orcamais.services.recurrence import RecurrenceEngine, new_id
from orcamais.services.summary import (
    budget_alerts,
    category_budget_statuses,
    compare_summaries,
    monthly_series,
    spending_alert,
    summarize,
    transactions_for_period,
)
from orcamais.utils.validators import (
    validate_credentials,
    validate_dream_data,
    validate_transaction_data,
)

logger = logging.getLogger(__name__)

PERSISTENCE_MESSAGE = "Não foi possível salvar seus dados. Tente novamente."
DEFAULT_USER_NAME = "Novo Usuário"


class FinanceService:
    """
    Data-access façade for one signed-in user.

    Owns the loaded user document, runs the recurrence catch-up before
    every ledger read and publishes a DataEvent after every successful
    mutation. Mutations return an OperationResult instead of raising.

    Usage:
        service = FinanceService(identity, store)
        service.login("ana@example.com", "secret1")
        service.add_transaction({
            "description": "Mercado",
            "amount": "150.00",
            "type": "expense",
            "date": "2025-03-10",
        })
        summary = service.get_financial_summary("2025-03")
    """

    def __init__(
        self,
        identity: IdentityProvider,
        store: DocumentStore,
        recurrence_engine: Optional[RecurrenceEngine] = None,
        categorization_engine: Optional[CategorizationEngine] = None,
        event_bus: Optional[EventBus] = None,
        clock: Callable[[], date] = date.today,
    ):
        self.identity = identity
        self.store = store
        self.recurrence_engine = recurrence_engine or RecurrenceEngine(store)
        self._categorization_engine = categorization_engine
        self.event_bus = event_bus or EventBus()
        self.clock = clock

        self._user: Optional[UserRef] = None
        self._document: Optional[UserDocument] = None
        self._locks: Dict[str, threading.RLock] = {}
        self._locks_guard = threading.Lock()

        # Fires immediately with the restored session, if any
        self._unsubscribe_auth = identity.on_auth_state_changed(self._on_auth_state_changed)

    @property
    def categorization_engine(self) -> CategorizationEngine:
        """Lazy-load categorization engine"""
        if self._categorization_engine is None:
            self._categorization_engine = CategorizationEngine()
        return self._categorization_engine

    def close(self) -> None:
        """Stop listening to the identity provider"""
        self._unsubscribe_auth()

    # ----------------------------------------------------------------
    # Internals
    # ----------------------------------------------------------------

    @contextmanager
    def _user_lock(self, user_id: str) -> Iterator[None]:
        with self._locks_guard:
            lock = self._locks.setdefault(user_id, threading.RLock())
        with lock:
            yield

    def _require_document(self) -> UserDocument:
        if self._user is None or self._document is None:
            raise NotAuthenticatedError("No signed-in user")
        return self._document

    def _fail(self, action: str, error: OrcaMaisError) -> OperationResult:
        if isinstance(error, ValidationError):
            logger.warning("%s rejected: %s %s", action, error, error.errors)
            return OperationResult.fail(str(error), error.errors)
        if isinstance(error, AuthError):
            logger.warning("%s rejected: %s", action, error.detail or error.user_message)
            return OperationResult.fail(error.user_message)
        if isinstance(error, PersistenceError):
            logger.error("%s failed: %s", action, error)
            return OperationResult.fail(PERSISTENCE_MESSAGE)
        logger.error("%s failed: %s", action, error)
        return OperationResult.fail(str(error))

    def _new_document(self, user: UserRef, name: Optional[str] = None) -> UserDocument:
        now = now_iso()
        return UserDocument(
            id=user.uid,
            profile=UserProfile(
                name=name or user.display_name or DEFAULT_USER_NAME,
                email=user.email,
                created_at=now,
                last_login=now,
            ),
            categories=self.categorization_engine.default_categories,
        )

    def _load_user_data(self, user: UserRef) -> UserDocument:
        """Load the user's document, creating or migrating it as needed"""
        data = self.store.get_document(user.uid)

        if data is None:
            document = self._new_document(user)
            self.store.set_document(user.uid, document.to_dict())
            logger.info("Created document for user %s", user.uid)
            return document

        missing = UserDocument.missing_keys(data)
        if missing:
            defaults = self._new_document(user).to_dict()
            patch = {key: defaults[key] for key in missing}
            self.store.set_document(user.uid, patch)
            data.update(patch)
            logger.info("Migrated document of user %s, added %s", user.uid, ", ".join(missing))

        return UserDocument.from_dict(user.uid, data)

    def _on_auth_state_changed(self, user: Optional[UserRef]) -> None:
        if user is None:
            self._user = None
            self._document = None
        else:
            try:
                self._document = self._load_user_data(user)
                self._user = user
            except PersistenceError as e:
                logger.error("Could not load data of user %s: %s", user.uid, e)
                self._user = user
                self._document = None
        self.event_bus.publish(DataEvent.AUTH_CHANGED)

    def _save_transactions(self, document: UserDocument) -> None:
        self.store.update_field(
            document.id, "transactions", [t.to_dict() for t in document.transactions]
        )

    def _save_dreams(self, document: UserDocument) -> None:
        self.store.update_field(document.id, "dreams", [d.to_dict() for d in document.dreams])

    def _catch_up(self) -> None:
        """Materialize pending recurring occurrences for the signed-in user"""
        document = self._document
        if document is None:
            return

        with self._user_lock(document.id):
            result = self.recurrence_engine.catch_up(
                document.id, document.transactions, today=self.clock()
            )

        for template_id, message in result.failed.items():
            logger.warning("Template %s left pending: %s", template_id, message)
        if result.changed:
            self.event_bus.publish(DataEvent.TRANSACTIONS_CHANGED)

    def _ledger(self) -> List[Transaction]:
        if self._document is None:
            return []
        self._catch_up()
        return self._document.transactions

    def _find_dream(self, document: UserDocument, dream_id: str) -> Dream:
        for dream in document.dreams:
            if dream.id == dream_id:
                return dream
        raise NotFoundError("Sonho não encontrado")

    # ----------------------------------------------------------------
    # Auth
    # ----------------------------------------------------------------

    def register(self, name: str, email: str, password: str) -> OperationResult[UserRef]:
        """Create an account, sign it in and store the profile name"""
        try:
            validate_credentials(email, password, name)
            user = self.identity.sign_up(email.strip(), password)
            user = self.identity.update_profile(user, name.strip())
            self._user = user

            document = self._document
            if document is not None and document.id == user.uid:
                document.profile.name = name.strip()
                self.store.update_field(user.uid, "profile.name", name.strip())
            else:
                self._document = self._load_user_data(user)
        except OrcaMaisError as e:
            return self._fail("Registration", e)

        logger.info("Registered user %s", user.uid)
        return OperationResult.ok(user, "Conta criada com sucesso!")

    def login(self, email: str, password: str) -> OperationResult[UserRef]:
        try:
            validate_credentials(email, password)
            user = self.identity.sign_in(email.strip(), password)
            document = self._require_document()
            document.profile.last_login = now_iso()
            self.store.update_field(user.uid, "profile.lastLogin", document.profile.last_login)
        except OrcaMaisError as e:
            return self._fail("Login", e)

        return OperationResult.ok(user)

    def logout(self) -> OperationResult[None]:
        try:
            self.identity.sign_out()
        except OrcaMaisError as e:
            return self._fail("Logout", e)

        # Providers that do not notify on sign-out still leave us signed out
        if self._user is not None:
            self._on_auth_state_changed(None)
        return OperationResult.ok()

    def get_current_user(self) -> Optional[UserProfile]:
        return self._document.profile if self._document is not None else None

    def is_logged_in(self) -> bool:
        return self._user is not None and self._document is not None

    def request_password_reset(self, email: str) -> OperationResult[None]:
        try:
            self.identity.send_password_reset(email.strip())
        except OrcaMaisError as e:
            return self._fail("Password reset", e)
        return OperationResult.ok(message="Enviamos um link de redefinição para o seu email.")

    # ----------------------------------------------------------------
    # Transactions
    # ----------------------------------------------------------------

    def add_transaction(self, data: Dict[str, Any]) -> OperationResult[Transaction]:
        """
        Validate and store a new transaction.

        Recurring payloads become templates with zeroed counters; their
        occurrences are generated right away up to the current period.
        A missing category is suggested from the description.
        """
        try:
            document = self._require_document()
            validate_transaction_data(data)

            description = str(data["description"]).strip()
            day = parse_day(data["date"])
            investment = data.get("investmentData")
            if isinstance(investment, dict):
                investment = InvestmentData.from_dict(investment)

            transaction = Transaction(
                id=new_id(),
                created_at=now_iso(),
                date=day,
                description=description,
                amount=to_decimal(data["amount"]),
                type=TransactionType(data["type"]),
                category=data.get("category") or self.suggest_category(description),
                investment_data=investment,
            )

            if data.get("isRecurring"):
                limit = data.get("recurrenceLimit")
                transaction.is_recurring = True
                transaction.recurrence_day = int(data.get("recurrenceDay") or day.day)
                transaction.recurrence_limit = int(limit) if limit else None
                transaction.recurrence_current = 0
                transaction.last_generated_period = None

            with self._user_lock(document.id):
                document.transactions.append(transaction)
                try:
                    self._save_transactions(document)
                except PersistenceError:
                    document.transactions.remove(transaction)
                    raise
        except OrcaMaisError as e:
            return self._fail("Adding transaction", e)

        logger.info("Added transaction %s (%s)", transaction.id, transaction.description)
        self.event_bus.publish(DataEvent.TRANSACTIONS_CHANGED)
        if transaction.is_template:
            self._catch_up()
        return OperationResult.ok(transaction)

    def remove_transaction(self, transaction_id: str) -> OperationResult[Transaction]:
        """Remove one transaction. Removing a template keeps its occurrences."""
        try:
            document = self._require_document()
            with self._user_lock(document.id):
                index = next(
                    (i for i, t in enumerate(document.transactions) if t.id == transaction_id),
                    None,
                )
                if index is None:
                    raise NotFoundError("Transação não encontrada")

                removed = document.transactions.pop(index)
                try:
                    self._save_transactions(document)
                except PersistenceError:
                    document.transactions.insert(index, removed)
                    raise
        except OrcaMaisError as e:
            return self._fail("Removing transaction", e)

        self.event_bus.publish(DataEvent.TRANSACTIONS_CHANGED)
        return OperationResult.ok(removed)

    def get_transactions_by_period(self, period: str) -> List[Transaction]:
        """Ledger entries of a period, newest first"""
        return transactions_for_period(period.strip(), self._ledger())

    def get_all_transactions(self) -> List[Transaction]:
        """Every ledger entry (templates excluded), newest first"""
        entries = [t for t in self._ledger() if not t.is_template]
        return sorted(entries, key=lambda t: (t.date, t.created_at or ""), reverse=True)

    def get_recurring_templates(self) -> List[Transaction]:
        if self._document is None:
            return []
        return [t for t in self._document.transactions if t.is_template]

    # ----------------------------------------------------------------
    # Summaries
    # ----------------------------------------------------------------

    def get_financial_summary(self, period: Optional[str] = None) -> FinancialSummary:
        """Catch up recurring transactions, then aggregate the period"""
        period = (period or current_period(self.clock())).strip()
        transactions = self._ledger()
        return summarize(period, transactions, self.get_monthly_income(period))

    def compare_periods(self, base_period: str, other_period: str) -> PeriodComparison:
        return compare_summaries(
            self.get_financial_summary(base_period),
            self.get_financial_summary(other_period),
        )

    def get_monthly_comparison(self, months: int = 6) -> List[FinancialSummary]:
        """Summaries of the last `months` periods up to the current one, oldest first"""
        transactions = self._ledger()
        incomes = self._document.monthly_income if self._document is not None else {}
        return monthly_series(transactions, incomes, months, current_period(self.clock()))

    def _derive_alerts(self, period: Optional[str] = None) -> List[Alert]:
        summary = self.get_financial_summary(period)
        alerts = budget_alerts(self._budget_statuses(summary), summary.period)
        spending = spending_alert(summary)
        if spending is not None:
            alerts.append(spending)
        return alerts

    def get_active_alerts(self, period: Optional[str] = None) -> List[Alert]:
        """Budget alerts plus the spending alert for the period, minus dismissed ones"""
        dismissed = set(self._document.dismissed_alerts) if self._document is not None else set()
        return [a for a in self._derive_alerts(period) if a.id not in dismissed]

    def dismiss_alert(self, alert_id: str) -> OperationResult[str]:
        """
        Hide an alert for good.

        Only alerts currently raised can be dismissed; the id carries the
        period it belongs to.
        """
        try:
            document = self._require_document()
            alert_id = (alert_id or "").strip()
            period = alert_id.rsplit(":", 1)[-1]
            try:
                parse_period(period)
            except ValueError as e:
                raise NotFoundError("Alerta não encontrado") from e
            if alert_id not in {a.id for a in self._derive_alerts(period)}:
                raise NotFoundError("Alerta não encontrado")

            with self._user_lock(document.id):
                if alert_id not in document.dismissed_alerts:
                    dismissed = document.dismissed_alerts + [alert_id]
                    self.store.update_field(document.id, "dismissedAlerts", dismissed)
                    document.dismissed_alerts = dismissed
        except OrcaMaisError as e:
            return self._fail("Dismissing alert", e)

        self.event_bus.publish(DataEvent.ALERTS_CHANGED)
        return OperationResult.ok(alert_id, "Alerta dispensado")

    # ----------------------------------------------------------------
    # Income and budgets
    # ----------------------------------------------------------------

    def set_monthly_income(self, period: str, amount: Any) -> OperationResult[Decimal]:
        try:
            document = self._require_document()
            try:
                parse_period(period)
                value = to_decimal(amount)
            except ValueError as e:
                raise ValidationError("Renda inválida", {"monthlyIncome": str(e)}) from e
            if value < 0:
                raise ValidationError(
                    "Renda inválida", {"monthlyIncome": "A renda não pode ser negativa"}
                )

            with self._user_lock(document.id):
                self.store.update_field(document.id, f"monthlyIncome.{period}", str(value))
                document.monthly_income[period] = value
        except OrcaMaisError as e:
            return self._fail("Setting monthly income", e)

        self.event_bus.publish(DataEvent.INCOME_CHANGED)
        return OperationResult.ok(value)

    def get_monthly_income(self, period: Optional[str] = None) -> Decimal:
        if self._document is None:
            return Decimal("0")
        period = period or current_period(self.clock())
        return self._document.monthly_income.get(period, Decimal("0"))

    def set_category_budget(self, category: str, limit: Any) -> OperationResult[Decimal]:
        """Set a category's monthly limit; a limit of zero removes the budget"""
        try:
            document = self._require_document()
            category = (category or "").strip()
            if not category:
                raise ValidationError("Orçamento inválido", {"category": "Categoria é obrigatória"})
            try:
                value = to_decimal(limit)
            except ValueError as e:
                raise ValidationError("Orçamento inválido", {"limit": str(e)}) from e
            if value < 0:
                raise ValidationError(
                    "Orçamento inválido", {"limit": "O limite não pode ser negativo"}
                )

            budgets = dict(document.category_budgets)
            if value == 0:
                budgets.pop(category, None)
            else:
                budgets[category] = value

            with self._user_lock(document.id):
                self.store.update_field(
                    document.id, "categoryBudgets", {c: str(v) for c, v in budgets.items()}
                )
                document.category_budgets = budgets
        except OrcaMaisError as e:
            return self._fail("Setting category budget", e)

        self.event_bus.publish(DataEvent.BUDGETS_CHANGED)
        return OperationResult.ok(value)

    def _budget_statuses(self, summary: FinancialSummary) -> List[CategoryBudgetStatus]:
        budgets = self._document.category_budgets if self._document is not None else {}
        return category_budget_statuses(budgets, summary)

    def get_category_budgets(self, period: Optional[str] = None) -> List[CategoryBudgetStatus]:
        """Each budget with the amount spent in the period (current by default)"""
        return self._budget_statuses(self.get_financial_summary(period))

    # ----------------------------------------------------------------
    # Dreams
    # ----------------------------------------------------------------

    def add_dream(self, data: Dict[str, Any]) -> OperationResult[Dream]:
        """
        Create a dream and its savings plan.

        The result message describes the plan (monthly amount or time
        needed).
        """
        try:
            document = self._require_document()
            validate_dream_data(data)

            # Only the field matching the calculation type is read
            calculation_type = CalculationType(data["calculationType"])
            by_date = calculation_type == CalculationType.DATE
            plan = plan_dream(
                name=str(data["name"]).strip(),
                total_value=to_decimal(data["totalValue"]),
                calculation_type=calculation_type,
                target_date=parse_day(data["targetDate"]) if by_date else None,
                monthly_amount=None if by_date else to_decimal(data["monthlyAmount"]),
                today=self.clock(),
            )

            dream = Dream(
                id=new_id(),
                created_at=now_iso(),
                name=str(data["name"]).strip(),
                total_value=to_decimal(data["totalValue"]),
                calculation_type=calculation_type,
                target_date=plan.target_date,
                monthly_amount=plan.monthly_amount,
            )

            with self._user_lock(document.id):
                document.dreams.append(dream)
                try:
                    self._save_dreams(document)
                except PersistenceError:
                    document.dreams.remove(dream)
                    raise
        except OrcaMaisError as e:
            return self._fail("Adding dream", e)

        self.event_bus.publish(DataEvent.DREAMS_CHANGED)
        return OperationResult.ok(dream, plan.message)

    def update_dream_savings(self, dream_id: str, new_amount: Any) -> OperationResult[Dream]:
        """Set the saved amount. Saving past the goal is allowed."""
        try:
            document = self._require_document()
            try:
                value = to_decimal(new_amount)
            except ValueError as e:
                raise ValidationError("Valor inválido", {"savedAmount": str(e)}) from e
            if value < 0:
                raise ValidationError(
                    "Valor inválido", {"savedAmount": "O valor guardado não pode ser negativo"}
                )

            with self._user_lock(document.id):
                dream = self._find_dream(document, dream_id)
                previous = dream.saved_amount
                dream.saved_amount = value
                try:
                    self._save_dreams(document)
                except PersistenceError:
                    dream.saved_amount = previous
                    raise
        except OrcaMaisError as e:
            return self._fail("Updating dream savings", e)

        self.event_bus.publish(DataEvent.DREAMS_CHANGED)
        return OperationResult.ok(dream)

    def contribute_to_dream(self, dream_id: str, amount: Any) -> OperationResult[Dream]:
        """Add an amount to what was already saved"""
        try:
            document = self._require_document()
            try:
                value = to_decimal(amount)
            except ValueError as e:
                raise ValidationError("Valor inválido", {"amount": str(e)}) from e
            if value <= 0:
                raise ValidationError("Valor inválido", {"amount": "Valor deve ser maior que zero"})

            # Reentrant: update_dream_savings takes the same lock
            with self._user_lock(document.id):
                dream = self._find_dream(document, dream_id)
                return self.update_dream_savings(dream_id, dream.saved_amount + value)
        except OrcaMaisError as e:
            return self._fail("Contributing to dream", e)

    def remove_dream(self, dream_id: str) -> OperationResult[Dream]:
        try:
            document = self._require_document()
            with self._user_lock(document.id):
                dream = self._find_dream(document, dream_id)
                index = document.dreams.index(dream)
                document.dreams.pop(index)
                try:
                    self._save_dreams(document)
                except PersistenceError:
                    document.dreams.insert(index, dream)
                    raise
        except OrcaMaisError as e:
            return self._fail("Removing dream", e)

        self.event_bus.publish(DataEvent.DREAMS_CHANGED)
        return OperationResult.ok(dream)

    def get_dreams(self) -> List[Dream]:
        return list(self._document.dreams) if self._document is not None else []

    # ----------------------------------------------------------------
    # Categories and settings
    # ----------------------------------------------------------------

    def get_categories(self) -> List[str]:
        return list(self._document.categories) if self._document is not None else []

    def add_category(self, name: str) -> OperationResult[str]:
        try:
            document = self._require_document()
            name = (name or "").strip()
            if not name:
                raise ValidationError("Categoria inválida", {"name": "Nome é obrigatório"})
            if name.lower() in (c.lower() for c in document.categories):
                raise ValidationError("Categoria inválida", {"name": "Esta categoria já existe"})

            with self._user_lock(document.id):
                categories = document.categories + [name]
                self.store.update_field(document.id, "categories", categories)
                document.categories = categories
        except OrcaMaisError as e:
            return self._fail("Adding category", e)

        self.event_bus.publish(DataEvent.SETTINGS_CHANGED)
        return OperationResult.ok(name)

    def suggest_category(self, description: str) -> str:
        """
        Suggest a category for a description.

        Suggestions outside the user's own category list fall back to
        'Outros'.
        """
        suggestion = self.categorization_engine.suggest(description)
        categories = self.get_categories()
        if categories and suggestion not in categories:
            return OTHER
        return suggestion

    def set_theme(self, theme: Any) -> OperationResult[Theme]:
        try:
            document = self._require_document()
            try:
                value = theme if isinstance(theme, Theme) else Theme(str(theme).lower())
            except ValueError as e:
                raise ValidationError("Tema inválido", {"theme": "Use 'light' ou 'dark'"}) from e

            with self._user_lock(document.id):
                self.store.update_field(document.id, "settings.theme", value.value)
                document.settings.theme = value
        except OrcaMaisError as e:
            return self._fail("Setting theme", e)

        self.event_bus.publish(DataEvent.SETTINGS_CHANGED)
        return OperationResult.ok(value)

    def get_theme(self) -> Theme:
        return self._document.settings.theme if self._document is not None else Theme.LIGHT

    # ----------------------------------------------------------------
    # Export and notifications
    # ----------------------------------------------------------------

    def get_export_data(self, scope: str = "current", period: Optional[str] = None) -> Optional[Dict[str, Any]]:
        """
        Data for an export file.

        Scopes:
            current: one period's summary and transactions
            all: every transaction, incomes, budgets and dreams
            budgets: budget statuses of the current period
            dreams: every dream
        """
        document = self._document
        if document is None:
            return None

        export: Dict[str, Any] = {
            "user": document.profile.to_dict(),
            "exportDate": datetime.now().isoformat(timespec="seconds"),
            "type": scope,
        }

        if scope == "current":
            summary = self.get_financial_summary(period)
            export["period"] = summary.period
            export["summary"] = summary.to_dict()
            export["transactions"] = [t.to_dict() for t in summary.transactions]
        elif scope == "all":
            export["transactions"] = [t.to_dict() for t in self.get_all_transactions()]
            export["monthlyIncomes"] = {p: str(v) for p, v in document.monthly_income.items()}
            export["categoryBudgets"] = {c: str(v) for c, v in document.category_budgets.items()}
            export["dreams"] = [d.to_dict() for d in document.dreams]
        elif scope == "budgets":
            export["budgets"] = [
                {
                    "category": status.category,
                    "limit": str(status.limit),
                    "spent": str(status.spent),
                    "percentage": f"{status.percentage:.1f}",
                    "status": status.status.value,
                }
                for status in self.get_category_budgets(period)
            ]
        elif scope == "dreams":
            export["dreams"] = [d.to_dict() for d in document.dreams]
        else:
            raise ValueError(f"Unknown export scope '{scope}'")

        return export

    def subscribe(
        self,
        callback: EventCallback,
        events: Optional[Iterable[DataEvent]] = None,
    ) -> Callable[[], None]:
        """Subscribe to change notifications; returns the unsubscribe function"""
        return self.event_bus.subscribe(callback, events)
