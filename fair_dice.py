import enum
import hashlib
import hmac
import logging
import os
import secrets
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Iterable, Optional, Sequence

from tabulate import tabulate

logger = logging.getLogger(__name__)

# ==============================================================================
# 1. Error Handling Classes
# ==============================================================================

class DiceGameError(Exception):
    """Base class for every error raised by the dice game."""


class InvalidConfiguration(DiceGameError):
    """
    Raised for bad dice specifications or out-of-range parameters.
    Provides a formatted message including an example of correct usage.
    """
    _invocation_command = "python"

    @staticmethod
    def set_invocation_command(command: str):
        """Sets the command used to run the script (e.g., 'python' or 'py')."""
        InvalidConfiguration._invocation_command = command

    def __init__(self, message: str):
        self.message = message
        super().__init__(self.message)

    def __str__(self) -> str:
        script_name = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else 'fair_dice.py'
        example = (
            f"{InvalidConfiguration._invocation_command} {script_name} "
            f"2,2,4,4,9,9 1,1,6,6,8,8 3,3,5,5,7,7"
        )
        return f"\nArgument Error: {self.message}\n\nExample usage:\n{example}\n"

InvalidConfiguration.NOT_ENOUGH_DICE = InvalidConfiguration("Please specify at least three dice.")
InvalidConfiguration.NON_INTEGER_VALUE = InvalidConfiguration("All dice faces must be integer values.")
InvalidConfiguration.EMPTY_DIE = InvalidConfiguration("A die must have at least one face.")


class ProtocolViolation(DiceGameError):
    """A negotiation step happened out of order, or a reveal does not match its commitment."""


class CounterpartAbandoned(DiceGameError):
    """The other party left in the middle of a round."""

# ==============================================================================
# 2. Data Structures for Dice
# ==============================================================================

def _parse_face(face) -> int:
    if isinstance(face, bool):
        raise InvalidConfiguration.NON_INTEGER_VALUE
    if isinstance(face, int):
        return face
    try:
        return int(str(face).strip())
    except ValueError:
        raise InvalidConfiguration.NON_INTEGER_VALUE from None


class Die:
    __slots__ = ("_faces",)

    def __init__(self, faces: Iterable):
        faces = tuple(_parse_face(f) for f in faces)
        if not faces:
            raise InvalidConfiguration.EMPTY_DIE
        self._faces = faces

    @classmethod
    def from_spec(cls, spec: str) -> "Die":
        return cls(f for f in spec.split(',') if f.strip())

    @property
    def faces(self) -> tuple:
        return self._faces

    def result_for_index(self, index: int) -> int:
        return self._faces[index % len(self._faces)]

    def __str__(self) -> str:
        return ",".join(map(str, self._faces))

    def __repr__(self) -> str:
        return f"Die([{self}])"

    def __len__(self) -> int:
        return len(self._faces)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Die):
            return NotImplemented
        return self._faces == other._faces

    def __hash__(self) -> int:
        return hash(self._faces)


class DiceSet:
    MIN_DICE = 3

    def __init__(self, dice: Iterable[Die]):
        dice = tuple(dice)
        if len(dice) < self.MIN_DICE:
            raise InvalidConfiguration.NOT_ENOUGH_DICE
        self._dice = dice

    @classmethod
    def from_args(cls, args: Sequence[str]) -> "DiceSet":
        if len(args) < cls.MIN_DICE:
            raise InvalidConfiguration.NOT_ENOUGH_DICE
        return cls(Die.from_spec(arg) for arg in args)

    @property
    def dice(self) -> tuple:
        return self._dice

    def index(self, die: Die) -> int:
        # identity first: two dice may share the same faces
        for i, candidate in enumerate(self._dice):
            if candidate is die:
                return i
        return self._dice.index(die)

    def __getitem__(self, index: int) -> Die:
        return self._dice[index]

    def __iter__(self):
        return iter(self._dice)

    def __len__(self) -> int:
        return len(self._dice)

# ==============================================================================
# 3. Cryptographic Operations Provider
# ==============================================================================

KEY_SIZE_BYTES = 32


class EntropySource:
    """Cryptographically secure randomness owned by a single consumer."""

    def __init__(self):
        self._random = secrets.SystemRandom()

    def key_bytes(self, size: int = KEY_SIZE_BYTES) -> bytes:
        return self._random.randbytes(size)

    def randint(self, low: int, high: int) -> int:
        return self._random.randint(low, high)

    def choice(self, seq: Sequence):
        return self._random.choice(seq)


def compute_hmac(key: bytes, value: int) -> str:
    message_bytes = str(value).encode('utf-8')
    return hmac.new(key, message_bytes, hashlib.sha256).hexdigest().upper()


def verify_commitment(digest: str, secret: int, key: bytes) -> None:
    if not hmac.compare_digest(compute_hmac(key, secret), digest.upper()):
        raise ProtocolViolation("Revealed secret and key do not match the published HMAC.")

# ==============================================================================
# 4. Commitment Generator
# ==============================================================================

class CommitmentState(enum.Enum):
    UNCOMMITTED = "uncommitted"
    COMMITTED = "committed"
    REVEALED = "revealed"


@dataclass(frozen=True)
class Reveal:
    secret: int
    key: bytes


class CommitmentGenerator:
    """
    Binds to a secret in [0, max] by publishing HMAC(key, secret) up front.
    The secret and key stay hidden until reveal(), after which anyone can
    recompute the HMAC and compare it with the published digest.
    """

    def __init__(self, entropy: Optional[EntropySource] = None):
        self._entropy = entropy or EntropySource()
        self._state = CommitmentState.UNCOMMITTED
        self._secret: Optional[int] = None
        self._key: Optional[bytes] = None
        self._digest: Optional[str] = None

    @property
    def state(self) -> CommitmentState:
        return self._state

    @property
    def digest(self) -> Optional[str]:
        return self._digest

    def commit(self, max_val: int) -> str:
        if self._state is not CommitmentState.UNCOMMITTED:
            raise ProtocolViolation(f"Cannot commit from state {self._state.value}.")
        if max_val < 0:
            raise InvalidConfiguration(f"Range upper bound must be non-negative, got {max_val}.")
        self._key = self._entropy.key_bytes()
        self._secret = self._entropy.randint(0, max_val)
        self._digest = compute_hmac(self._key, self._secret)
        self._state = CommitmentState.COMMITTED
        logger.debug("Committed to a value in 0..%d, HMAC=%s", max_val, self._digest)
        return self._digest

    def reveal(self) -> Reveal:
        if self._state is CommitmentState.UNCOMMITTED:
            raise ProtocolViolation("Cannot reveal before committing.")
        if self._state is CommitmentState.COMMITTED:
            self._state = CommitmentState.REVEALED
            logger.debug("Revealed value %d (key=%s)", self._secret, self._key.hex().upper())
        return Reveal(self._secret, self._key)

# ==============================================================================
# 5. Provably Fair Value Negotiation
# ==============================================================================

CounterpartProvider = Callable[[int, int], int]
AsyncCounterpartProvider = Callable[[int, int], Awaitable[int]]


@dataclass(frozen=True)
class NegotiationResult:
    digest: str
    secret: int
    key: bytes
    counterpart_value: int
    modulus: int
    result: int

    @property
    def key_hex(self) -> str:
        return self.key.hex().upper()

    @property
    def max_value(self) -> int:
        return self.modulus - 1

    def verify(self) -> None:
        verify_commitment(self.digest, self.secret, self.key)
        expected = (self.secret + self.counterpart_value) % self.modulus
        if self.result != expected:
            raise ProtocolViolation(
                f"Published result {self.result} does not match "
                f"({self.secret} + {self.counterpart_value}) mod {self.modulus} = {expected}."
            )


def _check_range(max_val: int) -> None:
    if isinstance(max_val, bool) or not isinstance(max_val, int) or max_val < 0:
        raise InvalidConfiguration(f"Range upper bound must be a non-negative integer, got {max_val!r}.")


class NegotiationRound:
    """One commit -> counterpart input -> reveal -> combine cycle."""

    def __init__(self, max_val: int, entropy: Optional[EntropySource] = None):
        _check_range(max_val)
        self.max_val = max_val
        self._generator = CommitmentGenerator(entropy)

    @property
    def state(self) -> CommitmentState:
        return self._generator.state

    def begin(self) -> str:
        return self._generator.commit(self.max_val)

    def complete(self, counterpart_value: int) -> NegotiationResult:
        if self._generator.state is not CommitmentState.COMMITTED:
            raise ProtocolViolation(f"Cannot complete a round in state {self._generator.state.value}.")
        if (isinstance(counterpart_value, bool) or not isinstance(counterpart_value, int)
                or not 0 <= counterpart_value <= self.max_val):
            raise ProtocolViolation(
                f"Counterpart value {counterpart_value!r} is outside 0..{self.max_val}."
            )
        revealed = self._generator.reveal()
        modulus = self.max_val + 1
        return NegotiationResult(
            digest=self._generator.digest,
            secret=revealed.secret,
            key=revealed.key,
            counterpart_value=counterpart_value,
            modulus=modulus,
            result=(revealed.secret + counterpart_value) % modulus,
        )


class FairValueNegotiator:
    def __init__(
        self,
        entropy_factory: Callable[[], EntropySource] = EntropySource,
        on_commit: Optional[Callable[[str, int], None]] = None,
        on_reveal: Optional[Callable[[NegotiationResult], None]] = None,
    ):
        self.entropy_factory = entropy_factory
        self.on_commit = on_commit
        self.on_reveal = on_reveal

    def _begin(self, max_val: int):
        _check_range(max_val)
        rnd = NegotiationRound(max_val, self.entropy_factory())
        digest = rnd.begin()
        if self.on_commit is not None:
            self.on_commit(digest, max_val)
        return rnd

    def _finish(self, rnd: NegotiationRound, counterpart_value: int) -> NegotiationResult:
        result = rnd.complete(counterpart_value)
        logger.info(
            "Fair value: (%d + %d) mod %d = %d",
            result.secret, result.counterpart_value, result.modulus, result.result,
        )
        if self.on_reveal is not None:
            self.on_reveal(result)
        return result

    def negotiate(self, max_val: int, provider: CounterpartProvider) -> NegotiationResult:
        rnd = self._begin(max_val)
        return self._finish(rnd, provider(0, max_val))

    async def negotiate_async(self, max_val: int, provider: AsyncCounterpartProvider) -> NegotiationResult:
        rnd = self._begin(max_val)
        return self._finish(rnd, await provider(0, max_val))

# ==============================================================================
# 6. Probability Calculation Logic
# ==============================================================================

@dataclass(frozen=True)
class ProbabilityMatrix:
    dice: tuple
    # cells[i][j] is P(dice[i] beats dice[j]); the diagonal is None
    cells: tuple

    def probability(self, row: int, col: int) -> Optional[float]:
        return self.cells[row][col]

    def best_counter(self, index: int) -> int:
        candidates = [i for i in range(len(self.dice)) if i != index]
        return max(candidates, key=lambda i: self.cells[i][index])

    def is_nontransitive(self) -> bool:
        # every die loses to at least one other, so "beats" has a cycle
        return all(
            any(self.cells[j][i] > 0.5 for j in range(len(self.dice)) if j != i)
            for i in range(len(self.dice))
        )


class ProbabilityCalculator:
    @staticmethod
    def calculate_win_probability(die1: Die, die2: Die) -> float:
        wins = sum(1 for f1 in die1.faces for f2 in die2.faces if f1 > f2)
        return wins / (len(die1) * len(die2))

    @staticmethod
    def calculate_tie_probability(die1: Die, die2: Die) -> float:
        ties = sum(1 for f1 in die1.faces for f2 in die2.faces if f1 == f2)
        return ties / (len(die1) * len(die2))

    @staticmethod
    def calculate_loss_probability(die1: Die, die2: Die) -> float:
        return ProbabilityCalculator.calculate_win_probability(die2, die1)

    @staticmethod
    def matrix(dice: Iterable[Die]) -> ProbabilityMatrix:
        dice = tuple(dice)
        rows = []
        for i, row_die in enumerate(dice):
            rows.append(tuple(
                None if i == j else ProbabilityCalculator.calculate_win_probability(row_die, col_die)
                for j, col_die in enumerate(dice)
            ))
        return ProbabilityMatrix(dice, tuple(rows))

# ==============================================================================
# 7. Help Table Generation
# ==============================================================================

class HelpTableGenerator:
    SELF_MARKER = "- (self)"

    @staticmethod
    def generate_table(matrix: ProbabilityMatrix) -> str:
        headers = ["User v PC >"] + [str(d) for d in matrix.dice]
        table_data = []
        for row_die, cells in zip(matrix.dice, matrix.cells):
            row = [str(row_die)]
            for prob in cells:
                row.append(HelpTableGenerator.SELF_MARKER if prob is None else f"{prob:.4f}")
            table_data.append(row)

        intro = (
            "\n--- Win Probability Table ---\n"
            "This table shows the probability of the User's die (rows) winning against the PC's die (columns).\n"
        )
        return intro + tabulate(table_data, headers=headers, tablefmt="grid", disable_numparse=True)

# ==============================================================================
# 8. Console User Interface
# ==============================================================================

class GameUI:
    EXIT = 'x'
    HELP = '?'

    def __init__(
        self,
        input_func: Optional[Callable[[str], str]] = None,
        output_func: Optional[Callable[[str], None]] = None,
    ):
        self._input = input_func or input
        self._output = output_func or print

    def display_message(self, text: str):
        self._output(text)

    def display_hmac(self, hmac_hex: str, max_val: int):
        self._output(f"I have chosen a random value in range 0..{max_val} (HMAC={hmac_hex}).")

    def display_reveal(self, result: NegotiationResult, name: str = "My number"):
        self._output(f"{name}: {result.secret} (KEY={result.key_hex})")
        self._output(
            f"Fair random number result: ({result.secret} + {result.counterpart_value}) "
            f"mod {result.modulus} = {result.result}"
        )

    def get_user_choice(self, prompt: str, options: Sequence[str], allow_help: bool = True) -> str:
        while True:
            self._output(f"\n{prompt}")
            for i, option in enumerate(options):
                self._output(f" {i} - {option}")

            self._output("\n X - Exit")
            if allow_help:
                self._output(" ? - Help")

            choice = self._input("Your choice: ").strip().lower()

            if choice == self.EXIT:
                raise CounterpartAbandoned("User exited the game.")
            if choice == self.HELP and allow_help:
                return self.HELP

            if choice.isdigit():
                choice_int = int(choice)
                if 0 <= choice_int < len(options):
                    return str(choice_int)

            self._output("Invalid choice. Please enter a valid number, '?', or 'X'.")

    def ask_yes_no(self, prompt: str) -> bool:
        return self._input(prompt).strip().lower() == 'y'

    def counterpart_provider(self, prompt: str, on_help: Optional[Callable[[], None]] = None) -> CounterpartProvider:
        def provide(min_val: int, max_val: int) -> int:
            options = [str(i) for i in range(min_val, max_val + 1)]
            while True:
                choice = self.get_user_choice(prompt, options, allow_help=on_help is not None)
                if choice == self.HELP:
                    on_help()
                    continue
                return min_val + int(choice)
        return provide

# ==============================================================================
# 9. Main Game Controller
# ==============================================================================

@dataclass(frozen=True)
class RoundOutcome:
    user_die: Die
    computer_die: Die
    user_roll: int
    computer_roll: int

    @property
    def winner(self) -> Optional[str]:
        if self.user_roll > self.computer_roll:
            return "user"
        if self.computer_roll > self.user_roll:
            return "computer"
        return None


class GameController:
    def __init__(
        self,
        dice: DiceSet,
        ui: GameUI,
        negotiator: Optional[FairValueNegotiator] = None,
        entropy: Optional[EntropySource] = None,
    ):
        self.all_dice = dice
        self.ui = ui
        self.negotiator = negotiator or FairValueNegotiator(
            on_commit=ui.display_hmac, on_reveal=ui.display_reveal,
        )
        self.entropy = entropy or EntropySource()
        self.matrix = ProbabilityCalculator.matrix(dice)

    def show_help(self):
        self.ui.display_message(HelpTableGenerator.generate_table(self.matrix))

    def run(self):
        self.ui.display_message("--- Welcome to the Non-Transitive Dice Game! ---")
        if not self.matrix.is_nontransitive():
            logger.warning("Dice set is transitive: %s", " ".join(str(d) for d in self.all_dice))
            self.ui.display_message("Note: one of these dice beats all the others, so the set is not non-transitive.")
        while True:
            self.play_round()
            if not self.ui.ask_yes_no("\nPlay another round? (y/n): "):
                self.ui.display_message("Thanks for playing!")
                break

    def play_round(self) -> RoundOutcome:
        user_goes_first = self.determine_first_player()

        player_die, computer_die = self._select_dice(user_goes_first)

        self.ui.display_message(f"\nYour die: [{player_die}]")
        self.ui.display_message(f"My die:   [{computer_die}]")

        self.ui.display_message("\n--- Time to roll! ---")

        self.ui.display_message("\nIt is your time to roll.")
        player_roll = self._roll(player_die)
        self.ui.display_message(f"Result of your roll is {player_roll}.")

        self.ui.display_message("\nIt is my time to roll.")
        computer_roll = self._roll(computer_die)
        self.ui.display_message(f"Result of my roll is {computer_roll}.")

        outcome = RoundOutcome(player_die, computer_die, player_roll, computer_roll)
        self.ui.display_message("\n--- Results ---")
        self.ui.display_message(f"You rolled {player_roll}, I rolled {computer_roll}.")
        if outcome.winner == "user":
            self.ui.display_message(f"You won! ({player_roll} > {computer_roll})")
        elif outcome.winner == "computer":
            self.ui.display_message(f"I won! ({computer_roll} > {player_roll})")
        else:
            self.ui.display_message("It's a draw!")
        logger.info("Round finished: user %d vs computer %d", player_roll, computer_roll)
        return outcome

    def determine_first_player(self) -> bool:
        self.ui.display_message("\nLet's determine who makes the first move.")
        provider = self.ui.counterpart_provider("Try to guess my choice.")
        result = self.negotiator.negotiate(1, provider)
        # a correct guess makes the sum even
        return result.result == 0

    def _roll(self, die: Die) -> int:
        num_faces = len(die)
        provider = self.ui.counterpart_provider(f"Add your number modulo {num_faces}.", on_help=self.show_help)
        result = self.negotiator.negotiate(num_faces - 1, provider)
        return die.result_for_index(result.result)

    def _select_dice(self, user_goes_first: bool):
        available_dice = list(self.all_dice)
        if user_goes_first:
            self.ui.display_message("You make the first move and choose the dice.")
            player_die = self._get_player_die_choice(available_dice)
            computer_die = self.all_dice[self.matrix.best_counter(self.all_dice.index(player_die))]
            self.ui.display_message(f"I choose dice [{computer_die}].")
        else:
            self.ui.display_message("I make the first move and choose the dice.")
            computer_die = self.entropy.choice(available_dice)
            available_dice.remove(computer_die)
            self.ui.display_message(f"I choose dice [{computer_die}].")
            player_die = self._get_player_die_choice(available_dice)
        return player_die, computer_die

    def _get_player_die_choice(self, available_dice: list):
        while True:
            options = [str(d) for d in available_dice]
            choice_str = self.ui.get_user_choice("Select your dice:", options, allow_help=True)
            if choice_str == GameUI.HELP:
                self.show_help()
                continue
            return available_dice[int(choice_str)]

# ==============================================================================
# 10. Main Execution Block
# ==============================================================================

def configure_logging():
    level = os.environ.get("FAIR_DICE_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    configure_logging()
    try:
        # Dynamically determine the command used to invoke the script
        if 'py.exe' in sys.executable.lower():
            InvalidConfiguration.set_invocation_command('py')
        else:
            InvalidConfiguration.set_invocation_command('python')

        args = sys.argv[1:] if argv is None else list(argv)
        dice = DiceSet.from_args(args)

        ui = GameUI()
        controller = GameController(dice, ui)
        controller.run()

    except InvalidConfiguration as e:
        print(e, file=sys.stderr)
        return 1
    except CounterpartAbandoned:
        print("Exiting game. Goodbye!")
    except (KeyboardInterrupt, EOFError):
        print("\nGame interrupted. Goodbye!")
    return 0

if __name__ == "__main__":
    sys.exit(main())
